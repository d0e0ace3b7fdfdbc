"""Web access: DuckDuckGo search and page crawling."""
