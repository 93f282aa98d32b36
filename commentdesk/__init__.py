"""CommentDesk: personalised public-comment letters for open rulemakings."""

__version__ = "1.0.0"
