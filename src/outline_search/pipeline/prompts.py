"""System prompts for the search collaborator.

Each prompt asks for a single JSON object; placeholders are filled with
``str.format`` so literal braces are doubled.
"""

RETRY_GUIDANCE = """\
The user wants a new and, if possible, better interpretation of the request. \
Take this indication into account: {instruction}"""

_IGNORED_TERMS = """\
Never use as search terms:
- particles, pronouns and search verbs ("find", "search for", "look up")
- phrases that do not restrict the search ("in my notes", "in my graph", "all blocks", \
"all entries") or that only name hierarchy ("parent", "children", "descendants")
- terms describing what to do with the results ("the best", "summarize", "what is wrong \
with"): post-processing happens later
- any term preceded by a backslash, e.g. 'my \\beautiful poems' searches 'poems'"""

INTERPRET_SYSTEM = """\
You turn a natural-language request into search parameters for an outline \
database: a forest of hierarchically nested text nodes grouped under pages.

Separate the keywords and the logic of the request from any question or \
processing to be done on the results.

Search list notation:
- items in conjunction (AND) are separated by ' + '
- alternatives within an item (OR) are separated by '|'
- a single excluded item (NOT) has a leading '-'
- 'A > B' means nodes matching A with some descendant matching B
- 'A < B' means nodes matching A with some ancestor matching B
- 'word~' asks for semantic variants of that word only
- quoted expressions, regexes, [[page links]], #tags and 'attribute::' are \
kept verbatim

""" + _IGNORED_TERMS + """

Output a single JSON object:
{{
  "search_list": "formatted search list",
  "alternative_list": "second search list for a clearly separate OR branch, or null",
  "result_count": number of results requested or null,
  "is_random": true if random results are requested, otherwise false,
  "period": {{"begin": "YYYY-MM-DD or null", "end": "YYYY-MM-DD or null"}} or null,
  "page_scope": "dnp" for daily notes only, a page title regex, or null,
  "needs_post_processing": true if the request asks for more than extracting nodes,
  "needs_inference": true if the request's keywords will probably miss the \
relevant content
}}

Rules:
- Today is {today}. Resolve relative periods against it; "recently" means the \
last quarter.
- Keep to 3 or 4 items at most; every item narrows the search.
- Example: 'recipes with sugar or vanilla that are not pastries' gives \
'recipes + sugar|vanilla -pastries'.
- Example: 'books that have [[to read]] as a child' gives 'books > [[to read]]'.\
"""

INFER_ALTERNATIVE_SYSTEM = """\
The keywords extracted from a question may not find the most relevant \
content. Predict what relevant answers would mention and write an alternative \
search list (at most 2 conjunctive items, each with many '|' alternatives) \
whose keywords differ clearly from the original list. Avoid ambiguous words \
that would flood the results.

""" + _IGNORED_TERMS + """

Output a single JSON object:
{{"alternative_list": "formatted search list, or an empty string if no better list exists"}}

Example: for 'What is the most mentioned color in my notes?' the list 'color' \
misses most answers; a better one is 'red|blue|green|yellow|black|white|purple|orange'.\
"""

CONVERT_SYSTEM = """\
You break search lists down into regex filters that are combined \
conjunctively (AND) for a text search.

Input: one or two search lists using this notation: ' + ' separates items \
(AND), '|' separates alternatives (OR), a leading '-' marks the single \
exclusion, '~' after a word asks for semantic variants of that word only, \
'A > B' puts A above B in the hierarchy and 'A < B' puts B above A.

For each item produce one filter:
- "pattern": a regex with alternatives joined by '|'. Add grammatical \
variants (plural, feminine) of plain words. Add synonyms only for words marked \
with '~'. A quoted expression becomes '\\bexpression\\b' without the quotes. \
Keep regexes, [[links]], #tags and 'attribute::' verbatim (escape regex \
metacharacters in links).
- "is_exclusion": true only for the item with a leading '-'.
- "is_ancestor_scoped": true only for the item higher in the hierarchy: the \
item BEFORE ' > ', or the item AFTER ' < '.
- "case_sensitive": true only when explicitly requested or for quoted \
expressions.

Output a single JSON object:
{{
  "filters": [[{{"pattern": "...", "is_exclusion": false, "is_ancestor_scoped": false, \
"case_sensitive": false}}]]
}}
"filters" holds one array of filters per input search list, in order. \
Do not add filters for anything not in the lists.\
"""

PRESELECT_SYSTEM = """\
You pick the nodes most relevant to a request from nodes extracted from an \
outline database, to reduce what will be processed afterwards.

Each node is listed as 'Node ((id)) in page [[Page Title]]' followed by its \
content; nodes are ordered from the most recently edited.

Output a single JSON object with at most {max_count} ids, copied exactly \
without the parentheses:
{{"ids": ["id1", "id2"]}}\
"""

POST_PROCESS_SYSTEM = """\
You answer a request using nodes extracted from the user's outline database. \
Each node is listed as 'Node ((id)) in page [[Page Title]]' followed by its \
content; nodes are ordered from the most recently edited.

Rules:
- Answer directly, without introduction, in the language of the request.
- When commenting on specific nodes, write the node reference '((id))' on its \
own line followed by your comment.
- When relying on a node elsewhere, cite it as '([source](((id))))', or with \
an incrementing number when citing several: '([1](((id))))'.\
"""
