"""
Plugin Registry - Discovery and registration of reconciler plugins.

This module provides the central registry for all reconciler plugins,
handling discovery, registration, and instantiation.
"""

from importlib.metadata import entry_points
from typing import Any, Dict, List, Optional, Type

from plugins.base import logger
from plugins.reconcilers.base import ReconcilerPlugin


class PluginRegistry:
    """
    Central registry for reconciler plugins.

    Maps resource type names to the reconciler that owns them and caches
    initialized reconciler instances.
    """

    def __init__(self):
        # Registered plugin classes (not instantiated)
        self._reconciler_plugins: Dict[str, Type[ReconcilerPlugin]] = {}

        # Cached plugin metadata to avoid repeated instantiation
        self._reconciler_plugin_info: Dict[str, Dict[str, Any]] = {}

        # Instantiated and initialized plugin instances
        self._reconciler_instances: Dict[str, ReconcilerPlugin] = {}

        # Plugin configurations loaded from environment
        self._reconciler_plugin_configs: Dict[str, Dict[str, Any]] = {}

        # Mapping from resource type name to reconciler plugin name
        self._resource_type_to_reconciler: Dict[str, str] = {}

    def register_reconciler_plugin(
        self, plugin_class: Type[ReconcilerPlugin]
    ) -> None:
        """
        Register a reconciler plugin class.

        Args:
            plugin_class: The ReconcilerPlugin subclass to register

        Raises:
            ValueError: If a resource type is already claimed by another reconciler
        """
        temp_instance = plugin_class()
        name = temp_instance.name
        resource_types = temp_instance.resource_types

        if name in self._reconciler_plugins:
            logger.warning(f"Overwriting existing reconciler plugin: {name}")

        # Check for resource type conflicts
        for rt in resource_types:
            existing = self._resource_type_to_reconciler.get(rt)
            if existing and existing != name:
                raise ValueError(
                    f"Resource type '{rt}' is already claimed by "
                    f"reconciler '{existing}'. Cannot register '{name}'."
                )

        self._reconciler_plugins[name] = plugin_class
        self._reconciler_plugin_info[name] = {
            "name": name,
            "resource_types": resource_types,
        }
        self._reconciler_plugin_configs[name] = plugin_class.load_config_from_env()

        for rt in resource_types:
            self._resource_type_to_reconciler[rt] = name

        logger.info(
            f"Registered reconciler plugin: {name} "
            f"(resource types: {', '.join(resource_types)})"
        )

    def get_reconciler_plugin(
        self, name: str, config: Optional[Dict[str, Any]] = None
    ) -> ReconcilerPlugin:
        """
        Get an initialized reconciler plugin instance.

        Args:
            name: The reconciler plugin name
            config: Optional configuration merged over the env-loaded config

        Returns:
            An initialized ReconcilerPlugin instance

        Raises:
            ValueError: If the plugin name is not registered
        """
        if name not in self._reconciler_plugins:
            available = ", ".join(self.list_reconciler_plugins()) or "none"
            raise ValueError(
                f"Unknown reconciler plugin: {name}. Available plugins: {available}"
            )

        if name not in self._reconciler_instances:
            plugin_config = self._reconciler_plugin_configs.get(name, {}).copy()
            if config:
                plugin_config.update(config)

            plugin = self._reconciler_plugins[name]()
            plugin.initialize(plugin_config)
            self._reconciler_instances[name] = plugin
            logger.info(f"Initialized reconciler plugin: {name}")

        return self._reconciler_instances[name]

    def get_reconciler_for_resource_type(
        self,
        resource_type: str,
        plugin_configs: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> ReconcilerPlugin:
        """
        Get the initialized reconciler that owns a resource type.

        Args:
            resource_type: The resource type name
            plugin_configs: Optional configuration overrides keyed by plugin
                name, used on first initialization

        Returns:
            An initialized ReconcilerPlugin instance

        Raises:
            ValueError: If no reconciler claims the resource type
        """
        name = self._resource_type_to_reconciler.get(resource_type)
        if name is None:
            available = ", ".join(self.list_resource_types()) or "none"
            raise ValueError(
                f"No reconciler handles resource type: {resource_type}. "
                f"Available resource types: {available}"
            )
        return self.get_reconciler_plugin(name, (plugin_configs or {}).get(name))

    # Query methods

    def list_reconciler_plugins(self) -> List[str]:
        """List all registered reconciler plugin names."""
        return list(self._reconciler_plugins.keys())

    def list_resource_types(self) -> List[str]:
        """List all resource types claimed by registered reconcilers."""
        return list(self._resource_type_to_reconciler.keys())

    def get_reconciler_plugin_info(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Get information about a registered reconciler plugin.

        Args:
            name: The reconciler plugin name

        Returns:
            Dictionary with 'name' and 'resource_types', or None if not found
        """
        return self._reconciler_plugin_info.get(name)

    def get_reconciler_plugin_config(self, name: str) -> Dict[str, Any]:
        """
        Get the env-loaded configuration for a reconciler plugin.

        Args:
            name: The plugin name

        Returns:
            Dictionary of configuration values, or empty dict if not found
        """
        return self._reconciler_plugin_configs.get(name, {})


# Global registry instance
_registry: Optional[PluginRegistry] = None


def get_registry() -> PluginRegistry:
    """Get the global plugin registry singleton."""
    global _registry
    if _registry is None:
        _registry = PluginRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_plugins(enabled: Optional[List[str]] = None) -> None:
    """
    Register the built-in reconciler and discover third-party reconciler
    plugins via entry points.

    This function is called during startup.

    Args:
        enabled: Entry point names to load (empty or None = all discovered)
    """
    registry = get_registry()

    from plugins.reconcilers.elasticache import ParameterGroupReconciler

    registry.register_reconciler_plugin(ParameterGroupReconciler)

    # Discover and register reconciler plugins via entry points
    discovered = entry_points(group="no8s.reconcilers")
    for ep in discovered:
        if enabled and ep.name not in enabled:
            logger.debug(f"Skipping reconciler plugin {ep.name}: not enabled")
            continue
        try:
            reconciler_class = ep.load()
            registry.register_reconciler_plugin(reconciler_class)
        except Exception as e:
            logger.warning(f"Could not load reconciler plugin {ep.name}: {e}")
