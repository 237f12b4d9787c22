"""
Text normalization applied before snapshot comparison.

Each step is a small pure callable (text -> text). Steps are composed into a
Pipeline and registered per topic key; topics without a pipeline use the
identity transform. Every step is idempotent, so a pipeline applied to its
own output returns it unchanged.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, Pattern, Sequence, Tuple, Union

PatternLike = Union[str, Pattern]


def _compile(patterns: Iterable[PatternLike]) -> Tuple[Pattern, ...]:
    return tuple(p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns)


def _lines(text: str) -> list:
    return text.splitlines()


def _join(lines: Iterable[str], original: str) -> str:
    joined = "\n".join(lines)
    # Сохранить завершающий перевод строки, если он был
    if joined and original.endswith("\n"):
        joined += "\n"
    return joined


class Step(ABC):
    """Базовый шаг нормализации."""

    @abstractmethod
    def __call__(self, text: str) -> str:
        pass


@dataclass(frozen=True)
class SortLines(Step):
    """Сортировка строк (сравнение без учёта порядка)."""

    unique: bool = False

    def __call__(self, text: str) -> str:
        lines = _lines(text)
        if self.unique:
            lines = set(lines)
        return _join(sorted(lines), text)


@dataclass(frozen=True)
class MaskDigits(Step):
    """Замена последовательностей цифр на placeholder."""

    placeholder: str = "X"

    def __post_init__(self):
        if any(ch.isdigit() for ch in self.placeholder):
            raise ValueError("placeholder must not contain digits")

    def __call__(self, text: str) -> str:
        return re.sub(r"[0-9]+", self.placeholder, text)


@dataclass(frozen=True)
class MaskPattern(Step):
    """
    Замена произвольного volatile-фрагмента.

    replacement должен сам совпадать с pattern (или не совпадать вовсе),
    иначе повторное применение изменит текст.
    """

    pattern: PatternLike
    replacement: str

    def __call__(self, text: str) -> str:
        return re.sub(self.pattern, self.replacement, text)


@dataclass(frozen=True)
class DropLines(Step):
    """Удаление строк, совпадающих с любым из шаблонов (ожидаемый шум)."""

    patterns: Sequence[PatternLike]
    drop_blank: bool = False

    def __call__(self, text: str) -> str:
        compiled = _compile(self.patterns)
        kept = [
            line for line in _lines(text)
            if not any(p.search(line) for p in compiled)
            and not (self.drop_blank and not line.strip())
        ]
        return _join(kept, text)


@dataclass(frozen=True)
class KeepLines(Step):
    """Оставить только строки, совпадающие хотя бы с одним шаблоном."""

    patterns: Sequence[PatternLike]

    def __call__(self, text: str) -> str:
        compiled = _compile(self.patterns)
        kept = [line for line in _lines(text) if any(p.search(line) for p in compiled)]
        return _join(kept, text)


@dataclass(frozen=True)
class ExtractMatches(Step):
    """Аналог grep -o: каждое совпадение на отдельной строке."""

    pattern: PatternLike

    def __call__(self, text: str) -> str:
        compiled = _compile([self.pattern])[0]
        found = []
        for line in _lines(text):
            found.extend(m.group(0) for m in compiled.finditer(line) if m.group(0))
        return "\n".join(found) + ("\n" if found else "")


@dataclass(frozen=True)
class ProjectColumns(Step):
    """
    Проекция колонок, разделённых пробелами.

    Невыбранные колонки внутри диапазона заменяются placeholder'ом, а не
    удаляются: так номера колонок сохраняются и повторная проекция даёт
    тот же результат. Для неотрицательных индексов диапазон начинается с
    первой колонки, для отрицательных заканчивается последней.
    """

    columns: Tuple[int, ...]
    placeholder: str = "-"

    def __post_init__(self):
        if not self.columns:
            raise ValueError("at least one column is required")
        if not self.placeholder or any(ch.isspace() for ch in self.placeholder):
            raise ValueError("placeholder must be a single non-blank token")

    def _project(self, line: str) -> str:
        fields = line.split()
        n = len(fields)
        kept = {c if c >= 0 else n + c for c in self.columns}
        kept = {i for i in kept if 0 <= i < n}
        if not kept:
            return ""

        if all(c >= 0 for c in self.columns):
            span = range(0, max(kept) + 1)
        elif all(c < 0 for c in self.columns):
            span = range(min(kept), n)
        else:
            span = range(0, n)

        return " ".join(fields[i] if i in kept else self.placeholder for i in span)

    def __call__(self, text: str) -> str:
        return _join((self._project(line) for line in _lines(text)), text)


@dataclass(frozen=True)
class CollapseWhitespace(Step):
    """Аналог diff -w/-b: схлопнуть пробелы и убрать их по краям строк."""

    def __call__(self, text: str) -> str:
        return _join((" ".join(line.split()) for line in _lines(text)), text)


@dataclass(frozen=True)
class SliceSection(Step):
    """
    Аналог sed -n '/start/,/end/p' | sed '$d'.

    Оставляет строки от первой строки, совпадающей со start, до строки,
    совпадающей с end (не включая её). Если end не найден, секция идёт до
    конца текста. Если start не найден, результат пустой.
    """

    start: PatternLike
    end: PatternLike

    def __call__(self, text: str) -> str:
        start, end = _compile([self.start, self.end])
        lines = _lines(text)
        section = []
        inside = False
        for line in lines:
            if not inside:
                if start.search(line):
                    inside = True
                    section.append(line)
                continue
            if end.search(line):
                break
            section.append(line)
        return _join(section, text)


@dataclass(frozen=True)
class Pipeline:
    """Композиция шагов нормализации."""

    steps: Tuple[Callable[[str], str], ...] = field(default_factory=tuple)

    def __call__(self, text: str) -> str:
        for step in self.steps:
            text = step(text)
        return text


IDENTITY = Pipeline()


class NormalizerRegistry:
    """Реестр нормализаторов по ключу topic."""

    def __init__(self, pipelines: Optional[Dict[str, Pipeline]] = None):
        self._pipelines: Dict[str, Pipeline] = dict(pipelines or {})

    def register(self, topic_key: str, *steps: Callable[[str], str]) -> Pipeline:
        pipeline = Pipeline(tuple(steps))
        self._pipelines[topic_key] = pipeline
        return pipeline

    def get(self, topic_key: str) -> Pipeline:
        return self._pipelines.get(topic_key, IDENTITY)

    def normalize(self, topic_key: str, raw_text: str) -> str:
        return self.get(topic_key)(raw_text)

    def keys(self):
        return self._pipelines.keys()

    def __contains__(self, topic_key: str) -> bool:
        return topic_key in self._pipelines
