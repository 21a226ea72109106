"""manual_rag.generation.prompt_builder

Prompt template definitions and rendering utilities.

Templates are named, consist of an optional system block and a user block,
and are rendered with Jinja2. They are registered from JSON files on disk or
bundled with the package, so prompt wording stays out of the code.

Classes
-------
PromptTemplate
    Represents a single named prompt template.
PromptBuilder
    Registry of prompt templates, plus helpers building the answer and
    rerank-judgment prompts from scored candidates.
"""
from typing import Optional, List, Dict, Any, Sequence, Union
from pathlib import Path
import json
import warnings
from importlib import resources

from jinja2 import Environment, StrictUndefined

from manual_rag.common.schemas import Candidate

_ENV = Environment(undefined=StrictUndefined, keep_trailing_newline=False, autoescape=False)


class PromptTemplate:
    """A single named prompt template.

    Parameters
    ----------
    name : str
        Name of the template.
    system : str or None, optional
        System-level instructions, rendered before the user block.
    user : str, optional
        User instruction block.
    """

    def __init__(self,
                 name: str,
                 system: Optional[str] = None,
                 user: Optional[str] = ''
        ):
        self.name = name
        self.system = system
        self.user = user or ''
        source = "\n".join(p for p in (self.system, self.user) if p)
        self._compiled = _ENV.from_string(source)

    def render(self, **kwargs) -> str:
        """Render the template; missing variables raise ``jinja2.UndefinedError``."""
        return self._compiled.render(**kwargs).strip()


class PromptBuilder:
    """Registry and factory for prompt templates.

    Parameters
    ----------
    passage_chars : int, optional
        Characters of each passage included in answer prompts. Defaults to ``900``.
    max_passages : int, optional
        Maximum number of passages included in answer prompts. Defaults to ``3``.
    """

    def __init__(self, passage_chars: int = 900, max_passages: int = 3):
        self.templates: Dict[str, PromptTemplate] = {}
        self.passage_chars = passage_chars
        self.max_passages = max_passages

    def register_from_dict(self, data: Dict[str, Any]) -> str:
        """Register a template from a mapping with ``name``, ``system`` and ``user`` keys.

        Raises
        ------
        KeyError
            If ``"name"`` is missing.
        TypeError
            If ``name`` is not a string.
        ValueError
            If ``name`` is empty.
        """
        if "name" not in data:
            raise KeyError("Template definition missing required key: 'name'")
        name = data["name"]
        if not isinstance(name, str):
            raise TypeError(f"Template 'name' must be a str, got {type(name)!r}")
        if not name.strip():
            raise ValueError("Template 'name' must be a non-empty string")

        system = data.get("system")
        user = data.get("user") or ""
        if isinstance(system, list):
            system = "\n".join(str(line) for line in system)
        if isinstance(user, list):
            user = "\n".join(str(line) for line in user)

        if name in self.templates:
            warnings.warn(f"Overwriting existing prompt template: {name}")
        self.templates[name] = PromptTemplate(name=name, system=system, user=user)
        return name

    def _register_payload(self, data: Any, origin: str) -> List[str]:
        if isinstance(data, dict):
            return [self.register_from_dict(data)]
        if isinstance(data, list):
            names = []
            for item in data:
                if not isinstance(item, dict):
                    raise TypeError(f"Template list items in {origin} must be dicts, got {type(item)!r}")
                names.append(self.register_from_dict(item))
            return names
        raise TypeError(f"{origin} must contain an object or list of objects, got {type(data)!r}")

    def register_from_file(self, path: Union[Path, str], base_dir: Optional[Path] = None) -> List[str]:
        """Load and register templates from a JSON file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValueError
            If the file extension is not ``.json``.
        """
        p = Path(path)
        if not p.is_absolute() and base_dir is not None:
            p = base_dir / p
        p = p.resolve()
        if not p.exists():
            raise FileNotFoundError(f"Prompt file not found: {p}")
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported file type: {p.suffix}")

        with p.open("r", encoding="utf-8") as f:
            return self._register_payload(json.load(f), str(p))

    def register_from_package(self, package: str, resource_path: str) -> List[str]:
        """Load and register templates from a JSON resource bundled in ``package``."""
        if not resource_path.lower().endswith(".json"):
            raise ValueError(f"Unsupported resource type: {resource_path}")

        res = resources.files(package).joinpath(resource_path)
        if not res.is_file():
            raise FileNotFoundError(f"Prompt resource not found: pkg:{package}:{resource_path}")

        data = json.loads(res.read_text(encoding="utf-8"))
        return self._register_payload(data, f"pkg:{package}:{resource_path}")

    def register_from_source(self, source: str, base_dir: Optional[Path] = None) -> List[str]:
        """Register templates from ``pkg:<package>:<path>``, ``file:<path>`` or a plain path."""
        if not isinstance(source, str):
            raise TypeError(f"source must be a str, got {type(source)!r}")

        if source.startswith("pkg:"):
            rest = source[len("pkg:"):]
            if ":" not in rest:
                raise ValueError("pkg: sources must be of the form 'pkg:<package>:<resource_path>'")
            package, resource_path = rest.split(":", 1)
            return self.register_from_package(package.strip(), resource_path.strip())

        if source.startswith("file:"):
            return self.register_from_file(Path(source[len("file:"):].strip()), base_dir=base_dir)

        return self.register_from_file(Path(source), base_dir=base_dir)

    def list_prompts(self) -> List[str]:
        """Return a sorted list of registered prompt template names."""
        return sorted(self.templates.keys())

    def has_prompt(self, name: str) -> bool:
        return name in self.templates

    def build(self, name: str, **kwargs) -> str:
        """Render the template registered under ``name``.

        Raises
        ------
        KeyError
            If no template is registered under ``name``.
        """
        if name not in self.templates:
            available = ", ".join(self.list_prompts())
            raise KeyError(f"No template registered under name: {name}. Available: [{available}]")
        return self.templates[name].render(**kwargs)

    def build_answer_prompt(self, name: str, query: str, candidates: Sequence[Candidate]) -> str:
        """Render an answer prompt from the top passages.

        Each passage is exposed to the template as ``{"index", "source", "text"}``
        with text clipped to :attr:`passage_chars`.
        """
        passages = [
            {
                "index": i,
                "source": c.source,
                "text": c.text[: self.passage_chars],
            }
            for i, c in enumerate(candidates[: self.max_passages], start=1)
        ]
        return self.build(name, question=query, passages=passages)

    def build_rerank_prompt(self, name: str, query: str, listing: str, k: int) -> str:
        """Render a rerank-judgment prompt from a preformatted candidate listing."""
        return self.build(name, question=query, listing=listing, k=k)


__all__ = ["PromptTemplate", "PromptBuilder"]
