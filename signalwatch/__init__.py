"""signalwatch: validate, deduplicate, enrich and store threat-intel signals."""

__version__ = "0.1.0"
