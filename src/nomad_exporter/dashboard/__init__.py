"""Terminal views of scrape results."""
