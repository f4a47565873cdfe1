"""blobpod - hierarchical resource storage over flat blob stores."""

__version__ = "0.1.0"
