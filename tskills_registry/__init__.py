"""tskills registry: private registry for versioned, access-controlled skills."""

__version__ = "0.1.0"
