"""Boilerplate Assembler -- compose projects from presets and optional modules.

Quick usage::

    from assembler.catalog import load_catalog
    from assembler.config import Config
    from assembler.pipeline import AssemblyCoordinator, GenerationRequest

    config = Config.from_env()
    coordinator = AssemblyCoordinator(load_catalog(config.templates_dir), config)
    result = await coordinator.generate(
        GenerationRequest(preset="nestjs", modules=["auth"], project_name="demo")
    )
"""

__version__ = "0.1.0"
