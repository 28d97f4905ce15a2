"""
Prompt templates stored as text files under ``system_prompts/``.
"""
import logging
import os
from functools import lru_cache

logger = logging.getLogger(__name__)

# Get the directory where this file is located
_AI_APP_DIR = os.path.dirname(os.path.abspath(__file__))
_PROMPTS_DIR = os.path.join(_AI_APP_DIR, 'system_prompts')


@lru_cache(maxsize=None)
def load_prompt(filename: str) -> str:
    """Load a prompt template from a text file."""
    filepath = os.path.join(_PROMPTS_DIR, filename)
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return f.read().strip()
    except FileNotFoundError:
        logger.error(f'Prompt file not found: {filepath}')
        raise


def render_prompt(filename: str, **values) -> str:
    return load_prompt(filename).format(**values)
