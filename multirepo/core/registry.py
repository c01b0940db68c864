"""Generic registry for auto-discovering operation classes."""

import pkgutil
import importlib
import inspect
import logging
from typing import Dict, Type, TypeVar, Generic, List, Optional, Iterable

logger = logging.getLogger('multirepo')

T = TypeVar('T')


class Registry(Generic[T]):
    """Discovers subclasses of a base class inside a package.

    Every module in the package (except the excluded ones) is imported and
    scanned; each subclass is keyed by its `name` attribute, and by any
    names in its `aliases` attribute.

    Example:
        operations = Registry(Operation, 'multirepo.operations',
                              exclude=['base', 'registry'])
        operations.get_or_raise('pull')
    """

    def __init__(
        self,
        base_class: Type[T],
        package: str,
        exclude: Optional[Iterable[str]] = None,
        name_attr: str = 'name'
    ):
        """Initialize the registry and scan the package.

        Args:
            base_class: The class registered items must inherit from
            package: Dotted package path to scan
            exclude: Module names to skip
            name_attr: Attribute holding the item name
        """
        self._base_class = base_class
        self._package = package
        self._exclude = set(exclude or [])
        self._name_attr = name_attr
        self._items: Dict[str, Type[T]] = {}
        self._aliases: Dict[str, str] = {}
        self._discover()

    def _discover(self) -> None:
        package_module = importlib.import_module(self._package)
        package_path = getattr(package_module, '__path__', None)
        if package_path is None:
            logger.warning(f"Package {self._package} has no __path__")
            return

        for _, module_name, _ in pkgutil.iter_modules(package_path):
            if module_name in self._exclude:
                continue
            module = importlib.import_module(f'{self._package}.{module_name}')
            self._scan_module(module)

    def _scan_module(self, module) -> None:
        for _, obj in inspect.getmembers(module, inspect.isclass):
            if obj is self._base_class or not issubclass(obj, self._base_class):
                continue
            if inspect.isabstract(obj):
                continue
            # Skip classes merely imported into this module
            if obj.__module__ != module.__name__:
                continue
            self.register(obj)

    def register(self, item_class: Type[T]) -> None:
        """Register a class under its name and aliases.

        Args:
            item_class: Class to register

        Raises:
            ValueError: If the class has no name attribute
        """
        name = getattr(item_class, self._name_attr, None)
        if not name:
            raise ValueError(f"Class must have '{self._name_attr}' attribute")
        self._items[name] = item_class
        for alias in getattr(item_class, 'aliases', ()):
            self._aliases[alias] = name
        logger.debug(f"Registered {self._base_class.__name__}: {name}")

    def get(self, name: str) -> Optional[Type[T]]:
        """Get an item by name or alias.

        Args:
            name: Item name

        Returns:
            Item class or None if not found
        """
        return self._items.get(self._aliases.get(name, name))

    def get_or_raise(self, name: str) -> Type[T]:
        """Get an item by name, raising if not found.

        Raises:
            KeyError: If the name is unknown
        """
        item = self.get(name)
        if item is None:
            available = ', '.join(self.list_names())
            raise KeyError(f"Unknown {self._base_class.__name__}: {name}. Available: {available}")
        return item

    def list_names(self) -> List[str]:
        return sorted(self._items.keys())
