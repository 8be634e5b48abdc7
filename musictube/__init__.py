"""Browse and search music videos and play their audio in a mini-player bar."""
