"""BucketDAV: a WebDAV server over flat-namespace object stores."""

__version__ = "0.1.0"
