from typing import Dict


class ResourceLabels:
    APP_LABEL = "app"


class Labels(ResourceLabels):
    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def selector(self) -> "Labels":
        """Labels that select the operand's pods."""
        return Labels({self.APP_LABEL: self._labels[self.APP_LABEL]})

    @classmethod
    def generate_default_labels(cls, app: str) -> "Labels":
        return Labels({cls.APP_LABEL: app})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Labels):
            return NotImplemented
        return self._labels == other._labels

    def __repr__(self) -> str:
        return f"Labels({self._labels!r})"
