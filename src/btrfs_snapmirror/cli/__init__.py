"""Command line interface for btrfs-snapmirror."""
