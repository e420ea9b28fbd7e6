# Scrapy settings for crawler project
from config import settings

BOT_NAME = "madaracrawler"

SPIDER_MODULES = ["crawler.spiders"]
NEWSPIDER_MODULE = "crawler.spiders"

# Obey robots.txt rules
ROBOTSTXT_OBEY = True

# Configure maximum concurrent requests
CONCURRENT_REQUESTS = 4
CONCURRENT_REQUESTS_PER_DOMAIN = 1

# Configure a delay for requests
DOWNLOAD_DELAY = settings.request_interval
RANDOMIZE_DOWNLOAD_DELAY = True
DOWNLOAD_TIMEOUT = settings.request_timeout

# Requests carry their own cookies (adult-content consent)
COOKIES_ENABLED = True

# Disable Telnet Console
TELNETCONSOLE_ENABLED = False

# Override the default request headers
DEFAULT_REQUEST_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en",
}

# Enable or disable spider middlewares
SPIDER_MIDDLEWARES = {
    "crawler.middlewares.ExtractionErrorMiddleware": 543,
}

# Enable or disable downloader middlewares
DOWNLOADER_MIDDLEWARES = {
    "scrapy.downloadermiddlewares.retry.RetryMiddleware": None,
    "crawler.middlewares.ChallengeAwareRetryMiddleware": 550,
    "crawler.middlewares.ChallengeMiddleware": 560,
}

# Configure item pipelines
ITEM_PIPELINES = {
    "crawler.pipelines.ValidationPipeline": 100,
    "crawler.pipelines.NormalizationPipeline": 200,
    "crawler.pipelines.JsonLinesPipeline": 300,
}

CRAWL_OUTPUT_DIR = settings.crawl_output_dir

# Enable and configure HTTP caching
HTTPCACHE_ENABLED = False

# Set settings whose default value is deprecated to a future-proof value
REQUEST_FINGERPRINTER_IMPLEMENTATION = "2.7"
TWISTED_REACTOR = "twisted.internet.asyncioreactor.AsyncioSelectorReactor"
FEED_EXPORT_ENCODING = "utf-8"

# Retry settings (503 is an anti-bot challenge and never retried)
RETRY_TIMES = 3
RETRY_HTTP_CODES = [500, 502, 504, 408, 429]

# Logging
LOG_LEVEL = settings.log_level
