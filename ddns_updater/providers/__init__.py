# /ddns-updater/ddns_updater/providers/__init__.py
import os
import importlib
import inspect
import logging
from .base_provider import BaseProvider

provider_loader_logger = logging.getLogger("ddns_updater.provider_loader")

_PROVIDER_CLASSES = {}


def _load_providers():
    if _PROVIDER_CLASSES:
        return

    current_dir = os.path.dirname(os.path.abspath(__file__))
    provider_loader_logger.debug(f"Loading providers from directory: {current_dir}")

    for filename in sorted(os.listdir(current_dir)):
        if not filename.endswith("_provider.py") or filename == "base_provider.py":
            continue
        module_name_short = filename[:-3]
        try:
            module = importlib.import_module(f".{module_name_short}", package=__name__)
        except ImportError as e:
            provider_loader_logger.error(f"Error importing provider module '{module_name_short}': {e}", exc_info=True)
            continue

        for class_name, class_obj in inspect.getmembers(module, inspect.isclass):
            if not issubclass(class_obj, BaseProvider) or class_obj is BaseProvider:
                continue
            if not isinstance(getattr(class_obj, 'NAME', None), str) or not class_obj.NAME:
                provider_loader_logger.warning(
                    f"Provider class '{class_name}' in module '{module_name_short}' "
                    f"is missing a valid 'NAME' string attribute. Skipping registration.")
                continue
            provider_identifier = class_obj.NAME.lower()
            if provider_identifier in _PROVIDER_CLASSES and _PROVIDER_CLASSES[provider_identifier] is not class_obj:
                provider_loader_logger.warning(
                    f"Duplicate provider identifier '{provider_identifier}' in module "
                    f"'{module_name_short}'. Overwriting with class '{class_name}'.")
            _PROVIDER_CLASSES[provider_identifier] = class_obj
            provider_loader_logger.debug(f"Registered provider '{provider_identifier}' (class: {class_name})")


_load_providers()


def get_provider_class(provider_name_from_config: str):
    if not provider_name_from_config:
        return None
    return _PROVIDER_CLASSES.get(provider_name_from_config.lower())


def get_supported_providers() -> list[dict]:
    providers_info = []
    for identifier, provider_class_obj in _PROVIDER_CLASSES.items():
        providers_info.append({
            "name": identifier,
            "class_name": provider_class_obj.__name__,
            "description": provider_class_obj.get_description(),
            "required_fields": provider_class_obj.get_required_config_fields(),
            "optional_fields": provider_class_obj.get_optional_config_fields(),
        })
    return sorted(providers_info, key=lambda p: p['name'])
