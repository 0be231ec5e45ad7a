# parser.py
# Action Parser: classifies one completion as ACTION, ANSWER or RETRY.
#
# Precedence:
#   1. Last Action: marker names a known tool and a usable input can be
#      extracted                                           → ACTION
#   2. Action: names a tool that does not exist            → RETRY
#   3. Last Answer:/Final Answer: marker with text after it → ANSWER
#   4. Text after the last Observation: (or the whole text) → ANSWER
#
# Step 4 is the normal case for models that forget the final-answer marker.

import re
from typing import Callable

from bingchain.models import ActionDirective, Classification, Markers, Verdict

NO_ANSWER = "No answer"


class ActionParser:
    def __init__(self, markers: Markers | None = None) -> None:
        self.markers = markers or Markers()
        fence = re.escape(self.markers.fence)
        self._fence_tag = re.compile(fence + r".+")

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def tool_name(self, text: str) -> str | None:
        """Lower-cased name after the last Action: marker, or None."""
        if self.markers.action not in text:
            return None
        name = text.split(self.markers.action)[-1].split("\n")[0]
        return name.lower().strip()

    def action_input(self, text: str) -> str:
        """
        Extract the argument text after the last Action Input: marker.

        Rules, first match wins:
          a. a fenced block: strip the language tag, take the first block
          b. an immediately-invoked function: cut just after ")()"
          c. a lone fence: cut at it
          d. otherwise: cut at the first blank line
        """
        m = self.markers
        raw = text.split(m.action_input)[-1].strip()
        fences = raw.count(m.fence)
        if fences >= 2:
            raw = self._fence_tag.sub(m.fence, raw)
            return raw.split(m.fence)[1].strip()
        if m.iife in raw:
            return raw.split(m.iife)[0] + m.iife
        if fences == 1:
            return raw.split(m.fence)[0].strip()
        return raw.split("\n\n")[0].strip()

    def answer(self, text: str) -> str:
        """Text after the last answer marker, else after the last Observation:."""
        cut = -1
        for marker in self.markers.answers:
            at = text.rfind(marker)
            if at >= 0:
                cut = max(cut, at + len(marker))
        if cut >= 0:
            answer = text[cut:].strip()
            if answer:
                return answer
        answer = text.split(self.markers.observation)[-1].strip()
        return answer or NO_ANSWER

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, text: str, is_tool: Callable[[str], bool]) -> Classification:
        name = self.tool_name(text)
        if name:
            if not is_tool(name):
                return Classification(verdict=Verdict.RETRY)
            if self.markers.action_input in text:
                tool_input = self.action_input(text)
                if tool_input and not tool_input.startswith("["):
                    return Classification(
                        verdict=Verdict.ACTION,
                        action=ActionDirective(tool_name=name, raw_input=tool_input),
                    )
        return Classification(verdict=Verdict.ANSWER, answer=self.answer(text))
