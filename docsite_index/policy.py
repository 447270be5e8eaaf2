"""Default policy tables for discovery and extraction.

These are defaults only. Every table is copied onto ``CrawlConfig`` and can be
replaced per crawl target.
"""

# Paths matching any of these are never enqueued during discovery.
DEFAULT_STATIC_ASSET_PATTERNS = [
    # Images
    r"\.(png|jpe?g|gif|svg|ico|webp|bmp|avif|tiff?)$",
    # Fonts
    r"\.(woff2?|ttf|otf|eot)$",
    # Stylesheets, scripts and source maps
    r"\.(css|scss|less|js|mjs|map)$",
    # Binary downloads
    r"\.(pdf|zip|gz|tgz|tar|dmg|exe|mp4|mp3|webm)$",
    # Machine-readable endpoints
    r"(^|/)(sitemap[^/]*\.xml|robots\.txt|feed|rss|atom)(\.xml)?$",
    r"\.(xml|rss|atom|json|txt)$",
    # Asset directories
    r"^/(assets|static|images|img|fonts|css|js)(/|$)",
    # Hidden and framework-internal segments (/_next, /.well-known, ...)
    r"(^|/)[_.][^/]*",
]

# Explicit language metadata is trusted only when it names one of these.
DEFAULT_VALID_LANGUAGES = frozenset(
    {
        "javascript", "js", "jsx", "typescript", "ts", "tsx", "python", "py", "java", "c", "cpp", "c++",
        "csharp", "c#", "cs", "php", "ruby", "rb", "go", "golang", "rust", "swift", "kotlin", "scala",
        "html", "css", "scss", "sass", "less", "xml", "json", "yaml", "yml", "toml", "ini", "env",
        "markdown", "md", "sql", "bash", "sh", "shell", "zsh", "console", "powershell", "ps1",
        "dockerfile", "docker", "nginx", "apache", "htaccess", "diff", "patch", "regex", "graphql",
        "solidity", "vim", "lua", "perl", "r", "matlab", "latex", "tex", "makefile", "cmake",
        "gradle", "maven", "ant", "hcl", "terraform", "protobuf", "proto", "text", "plaintext",
    }
)

# First path segment -> canonical section name. Unknown segments are title-cased.
DEFAULT_SECTION_MAP = {
    "api": "API",
    "sdk": "SDK",
    "cli": "CLI",
    "faq": "FAQ",
    "introduction": "Introduction",
    "intro": "Introduction",
    "overview": "Introduction",
    "docs": "Documentation",
    "guides": "Guides",
    "guide": "Guides",
    "reference": "Reference",
    "tutorials": "Tutorials",
    "backend": "Backend",
    "frontend": "Frontend",
}

# Section assigned to the root page.
ROOT_SECTION = "Introduction"

# Elements removed before content selection.
NOISE_SELECTORS = [
    "script",
    "style",
    "noscript",
    "template",
    "nav",
    ".navigation",
    ".sidebar",
    ".toc",
    ".table-of-contents",
    ".breadcrumb",
    ".breadcrumbs",
]

# Semantic content containers, first match in document order wins.
CONTENT_SELECTORS = "main, .content, .page-content, article, .markdown-body, [role=main]"

# Common code block markup across documentation generators.
CODE_BLOCK_SELECTORS = [
    "pre code",
    ".highlight pre",
    ".code-block",
    ".snippet",
    "[data-lang]",
    "[data-language]",
    '[class*="language-"]',
]
