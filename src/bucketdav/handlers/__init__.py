"""WebDAV method handlers for BucketDAV."""
