"""
Metadata for the built-in tool set.

These definitions are what the selector shows the reasoning model, and what
the tool discovery endpoints return. Keep descriptions short and literal:
the model picks tools from them.
"""

from ..models import ToolExample, ToolMetadata, ToolParameter

GET_TODAYS_EVENTS = ToolMetadata(
    name="get_todays_events",
    description=(
        "List the user's calendar events for a single day. Defaults to today. "
        "Use for 'what's on my calendar', 'do I have meetings', 'am I free'."
    ),
    category="calendar",
    parameters=[
        ToolParameter(
            name="date", type="string",
            description="Day to list: YYYY-MM-DD, 'today', 'tomorrow' or 'yesterday'. Omit for today.",
            examples=["2025-03-14", "tomorrow"],
        ),
        ToolParameter(
            name="timezone", type="string",
            description="IANA timezone that today/tomorrow are resolved in. Filled from the request when omitted.",
            examples=["Australia/Canberra"],
        ),
    ],
    examples=[
        ToolExample(query="What's on my calendar today?", expected_params={}),
        ToolExample(query="Do I have any meetings tomorrow?", expected_params={"date": "tomorrow"}),
    ],
    time_context="current",
    data_access="read",
)

CREATE_CALENDAR_EVENT = ToolMetadata(
    name="create_calendar_event",
    description="Create a new calendar event. Requires a title, a date and a start time.",
    category="calendar",
    parameters=[
        ToolParameter(name="title", type="string", description="Event title", required=True),
        ToolParameter(
            name="date", type="string", description="YYYY-MM-DD, 'today' or 'tomorrow'",
            required=True, examples=["2025-03-14"],
        ),
        ToolParameter(name="time", type="string", description="Start time as HH:MM (24h)", required=True),
        ToolParameter(name="duration_hours", type="number", description="Length in hours (default 1)"),
        ToolParameter(name="description", type="string", description="Optional notes"),
        ToolParameter(
            name="timezone", type="string",
            description="IANA timezone that relative dates are resolved in. Filled from the request when omitted.",
        ),
    ],
    examples=[
        ToolExample(
            query="Schedule a dentist appointment tomorrow at 3pm",
            expected_params={"title": "Dentist appointment", "date": "tomorrow", "time": "15:00"},
        ),
    ],
    time_context="future",
    data_access="write",
)

GET_EMAILS = ToolMetadata(
    name="get_emails",
    description=(
        "Search the user's mailbox with provider query syntax "
        "(e.g. 'from:alice is:unread'). An empty query returns the most recent mail."
    ),
    category="email",
    parameters=[
        ToolParameter(
            name="query", type="string", description="Mail search query",
            examples=["is:unread", "from:boss@example.com", "subject:invoice"],
        ),
        ToolParameter(name="max_results", type="number", description="How many messages (default 10)"),
    ],
    examples=[
        ToolExample(query="Do I have unread emails from Sarah?", expected_params={"query": "from:sarah is:unread"}),
        ToolExample(query="Find the invoice emails", expected_params={"query": "invoice"}),
    ],
    time_context="recent",
    data_access="read",
)

GET_LAST_TEN_MAILS = ToolMetadata(
    name="get_last_ten_mails",
    description="Fetch the ten most recent emails in the inbox.",
    category="email",
    examples=[
        ToolExample(query="Show me my latest emails", expected_params={}),
        ToolExample(query="Create a summary document of my last emails", expected_params={}),
    ],
    time_context="recent",
    data_access="read",
)

SEARCH_WEB = ToolMetadata(
    name="search_web",
    description=(
        "Search the web for current information, news and research topics. "
        "Returns titles, URLs and snippets."
    ),
    category="search",
    parameters=[
        ToolParameter(name="query", type="string", description="Search terms", required=True),
        ToolParameter(name="max_results", type="number", description="How many hits (default 5, max 10)"),
    ],
    examples=[
        ToolExample(
            query="Research the latest developments in fusion energy",
            expected_params={"query": "latest developments in fusion energy"},
        ),
        ToolExample(query="Who won the match last night?", expected_params={"query": "match result last night"}),
    ],
    time_context="realtime",
    data_access="read",
)

CRAWL_PAGE = ToolMetadata(
    name="crawl_page",
    description="Fetch a web page and return its readable text content.",
    category="web",
    parameters=[
        ToolParameter(name="url", type="string", description="Absolute URL to fetch", required=True),
        ToolParameter(name="extract_content", type="boolean", description="Return page text (default true)"),
        ToolParameter(name="max_length", type="number", description="Maximum characters of text (default 5000)"),
    ],
    examples=[
        ToolExample(query="What does https://example.com say?", expected_params={"url": "https://example.com"}),
    ],
    time_context="current",
    data_access="read",
)

SEARCH_DRIVE = ToolMetadata(
    name="search_drive",
    description="Find files in the user's Drive by name or content.",
    category="drive",
    parameters=[
        ToolParameter(name="query", type="string", description="File name or text to look for", required=True),
        ToolParameter(name="max_results", type="number", description="How many files (default 10)"),
    ],
    examples=[
        ToolExample(query="Find my budget spreadsheet", expected_params={"query": "budget"}),
    ],
    time_context="any",
    data_access="read",
)

GET_DRIVE_FILE = ToolMetadata(
    name="get_drive_file",
    description="Open a single Drive file by id and return its metadata and text content.",
    category="drive",
    parameters=[
        ToolParameter(name="file_id", type="string", description="Drive file id", required=True),
    ],
    examples=[
        ToolExample(query="Open that file", expected_params={"file_id": "<id from earlier results>"}),
    ],
    time_context="any",
    data_access="read",
)

CREATE_DOCUMENT = ToolMetadata(
    name="create_document",
    description="Create a document from supplied content, saved locally, to Google Drive, or both.",
    category="documents",
    parameters=[
        ToolParameter(name="title", type="string", description="Document title", required=True),
        ToolParameter(name="content", type="string", description="Document body (markdown)", required=True),
        ToolParameter(
            name="type", type="string", description="markdown, text or html (default markdown)",
            examples=["markdown"],
        ),
        ToolParameter(
            name="destination", type="string", description="local, google_drive or both (default local)",
            examples=["local", "both"],
        ),
    ],
    examples=[
        ToolExample(
            query="Save a note called Groceries with milk and eggs",
            expected_params={"title": "Groceries", "content": "- milk\n- eggs"},
        ),
    ],
    time_context="any",
    data_access="write",
)

GENERATE_CONTENT = ToolMetadata(
    name="generate_content",
    description="Draft written content such as notes, outlines, emails, plans or reports.",
    category="productivity",
    parameters=[
        ToolParameter(name="prompt", type="string", description="What to write", required=True),
        ToolParameter(name="format", type="string", description="Desired format, e.g. 'bullet list'"),
    ],
    examples=[
        ToolExample(
            query="Write a project kickoff agenda and save it",
            expected_params={"prompt": "project kickoff agenda"},
        ),
    ],
    time_context="any",
    data_access="read",
)

PROCESS_DOCUMENT = ToolMetadata(
    name="process_document",
    description=(
        "Summarise a document and extract its key points. Accepts a Drive file id, "
        "a saved local file name, or inline text."
    ),
    category="documents",
    parameters=[
        ToolParameter(name="file_id", type="string", description="Drive file id"),
        ToolParameter(name="file_name", type="string", description="Local document file name"),
        ToolParameter(name="text", type="string", description="Inline text to summarise"),
    ],
    examples=[
        ToolExample(
            query="Summarize the quarterly report and save the summary",
            expected_params={"file_id": "<id>"},
        ),
    ],
    time_context="any",
    data_access="read",
)

BUILTIN_TOOL_METADATA: list[ToolMetadata] = [
    GET_TODAYS_EVENTS,
    CREATE_CALENDAR_EVENT,
    GET_EMAILS,
    GET_LAST_TEN_MAILS,
    SEARCH_WEB,
    CRAWL_PAGE,
    SEARCH_DRIVE,
    GET_DRIVE_FILE,
    CREATE_DOCUMENT,
    GENERATE_CONTENT,
    PROCESS_DOCUMENT,
]
