from typing import Dict


class ResourceLabels:
    PORTER_LABEL = "porter"

    INSTALLATION_LABEL = "installation"

    JOB_LABEL = "job"


class Labels(ResourceLabels):
    """Labels placed on every object the operator creates.

    The `porter=true` marker together with the installation name lets
    external tooling select (and clean up) everything that belongs to one
    Installation.
    """

    PORTER_LABEL_VALUE = "true"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = dict(labels) if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def as_str(self, separator: str = ",") -> str:
        """Return labels as a `key=value` string joined by `separator`."""
        return separator.join([f"{k}={v}" for k, v in self._labels.items()])

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_porter(self) -> "Labels":
        return self.include(self.PORTER_LABEL, self.PORTER_LABEL_VALUE)

    def include_installation(self, installation_name: str) -> "Labels":
        return self.include(
            self.INSTALLATION_LABEL,
            self.get_or_valid_label_value(installation_name),
        )

    def include_job(self, job_name: str) -> "Labels":
        return self.include(self.JOB_LABEL, self.get_or_valid_label_value(job_name))

    def copy(self) -> "Labels":
        return Labels(self._labels)

    @staticmethod
    def get_or_valid_label_value(value: str) -> str:
        """Trim a value so it is accepted as a label value:
        * (([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?
        * 63 characters max
        """
        if not value:
            return ""
        value = value[:63]
        return value.rstrip(".-_")

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def generate_default_labels(cls, installation_name: str) -> "Labels":
        """Labels shared by the job, its pods and the scratch volume."""
        return Labels().include_porter().include_installation(installation_name)
