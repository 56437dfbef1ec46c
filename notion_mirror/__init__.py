"""Recursive Notion content mirror.

Walks a Notion page tree from one root id through the public API and
streams every block, page, database and comment it finds.

Key modules:
    crawler         -- Crawler, the discovery rules and task spawning
    controller      -- CrawlController for in-flight task accounting
    executor        -- RequestExecutor, one task per call, throttled retry
    pagination      -- PaginationCursor and ListPage for listing endpoints
    rate_limiter    -- RateLimiter token bucket shared by all requests
    api             -- endpoints, headers and response checks
    records         -- Block, Page, Database, User, Comment decoding
    models          -- task, result and metrics dataclasses
    errors          -- NotionError hierarchy
    metrics         -- MetricsCollector for per-request statistics
    storage         -- SqliteStorage and JsonlStorage record stores
    config          -- CrawlConfig resolution from flags, env and .env
"""
