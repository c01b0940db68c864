"""Operation registry for auto-discovery."""

from .base import Operation
from ..core.registry import Registry

registry: Registry[Operation] = Registry(
    base_class=Operation,
    package='multirepo.operations',
    exclude=['base', 'registry']
)