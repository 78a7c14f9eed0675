"""repo_merger: merge the files of a remote git repository into one text file."""

__version__ = "0.1.0"
