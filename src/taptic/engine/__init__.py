from .selection import top3
from .inference import ClassifierBackend, YamnetClassifier, load_labels

__all__ = ["top3", "ClassifierBackend", "YamnetClassifier", "load_labels"]
