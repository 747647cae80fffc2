"""Provider annotating Go files that mention a configured word."""

import re


def capabilities(params, settings):
    return {"selector": [{"path": "**/*.go"}]}


async def items(params, settings):
    return [{"title": f"{settings.get('prefix', '')}{params['uri']}"}]


def annotations(params, settings):
    word = settings.get("word", "histogram")
    result = []
    for line_number, line in enumerate(params["content"].splitlines()):
        for match in re.finditer(re.escape(word), line):
            result.append(
                {
                    "uri": params["uri"],
                    "range": {
                        "start": {"line": line_number, "character": match.start()},
                        "end": {"line": line_number, "character": match.end()},
                    },
                    "item": {"title": f"metric: {word}"},
                }
            )
    return result
