"""Remote endpoint calls: confirmed writes and snapshot reads."""
