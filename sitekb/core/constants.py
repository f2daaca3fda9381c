"""Application constants."""

# Crawling
DEFAULT_BATCH_SIZE = 25
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
STRIPPED_TAGS = ["script", "style"]

# Upper bound on cursor moves while walking between two headings
MAX_TRAVERSAL_STEPS = 100_000

# Corpus serialization
PAGE_SEPARATOR = "----------------------------------"
PAGE_JOINER = "\n\n"

# Knowledge base
KNOWLEDGE_BASE_NAME_TEMPLATE = "assistant for {site_url}"
CORPUS_FILENAME_TEMPLATE = "corpus-{digest}.txt"

# Conversation
USER_ROLE = "user"
DEFAULT_MESSAGE_LIMIT = 10
MESSAGE_ORDER_DESC = "desc"
