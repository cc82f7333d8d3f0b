"""create-amp scaffolder -- turns a resolved configuration into a project tree.

The scaffolder selects the template layers for a ``ProjectConfig``, copies
them from a corpus with placeholder substitution and conditional inclusion,
merges ``.additions`` fragments and finally runs git and the package manager.

Quick usage::

    from create_amp.corpus import LocalCorpus
    from create_amp.scaffolder import ProjectGenerator

    generator = ProjectGenerator(config, LocalCorpus("/path/to/amp-templates"), settings)
    result = await generator.generate()
"""

from create_amp.scaffolder.generator import GenerationResult, ProjectGenerator
from create_amp.scaffolder.selector import TemplateLayer, select_templates
from create_amp.scaffolder.templates import TemplateRenderer

__all__ = [
    "GenerationResult",
    "ProjectGenerator",
    "TemplateLayer",
    "TemplateRenderer",
    "select_templates",
]
