# prompts.py
# Default templates and template loading.
#
# Templates use ${placeholder} substitution. Unknown placeholders are left
# in place so a hand-edited prompt.txt never fails to render.

import os
from string import Template

DEFAULT_PROMPT = """\
Answer the following questions as best you can, in ${language}. \
You have access to the following tools:

${tools}

Use the following format:

Question: the input question you must answer
Thought: you should always think about what to do
Action: the action to take, should be one of [${toolList}]
Action Input: the input to the action
Observation: the result of the action
... (this Thought/Action/Action Input/Observation can repeat N times)
Thought: I now know the final answer
Final Answer: the final answer to the original input question

Begin!

Question: ${question}
Thought:"""

MERGE_PROMPT = """\
The following is a friendly conversation between a human and an AI. \
Rephrase the follow-up question so it can be understood without the conversation.

Conversation:
${history}

Follow-up question: ${question}
Standalone question:"""

PLUGIN_PROMPT = """\
You now have access to a new API, described by the OpenAPI document below. \
To call one of its operations, use the apicall tool. Its input is the HTTP \
method in capital letters, a colon (:), then the path from the paths object \
with any templated path parameters already replaced. Relative paths are \
resolved against the first entry of the servers object. Request headers, if \
any, follow a # sign as a JSON object. Reply with a short confirmation that \
you understand how to use this API."""


def load_template(path: str, default: str) -> str:
    """Read a template file, falling back to `default` when it does not exist."""
    if path and os.path.exists(path):
        with open(path, encoding="utf-8") as fh:
            return fh.read()
    return default


def render(template: str, **values: str) -> str:
    return Template(template).safe_substitute(**values)
