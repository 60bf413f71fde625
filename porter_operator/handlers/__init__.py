from porter_operator.handlers import installation, probes

__all__ = ["installation", "probes"]
