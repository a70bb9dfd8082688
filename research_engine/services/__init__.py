"""Pipeline stages, capability interfaces, vendor providers and registries."""
