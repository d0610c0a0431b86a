"""
Output formats for an AggregationResult: HTML page, JSON payload and a plain
text table for the command line.
"""

import json
from html import escape
from typing import List

from .base import AggregationResult, Provenance, ResolvedTag

# Set in the image environment by s2i builds
BUILD_NAME_ENV = 'OPENSHIFT_BUILD_NAME'

PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{registry}</title>
<style>
body {{ font-family: sans-serif; margin: 2em; }}
.alert {{ padding: .5em 1em; margin-bottom: .5em; border-radius: 4px; }}
.alert-danger {{ background: #f8d7da; }}
.alert-info {{ background: #d1ecf1; }}
table {{ border-collapse: collapse; margin-bottom: 2em; width: 100%; }}
td, th {{ border-bottom: 1px solid #ddd; padding: .3em .6em; text-align: left; vertical-align: top; }}
code {{ font-size: .9em; }}
</style>
</head>
<body>
<h1>{registry}</h1>
{messages}
{images}
</body>
</html>
"""


def commit_url(provenance: Provenance) -> str:
    """Best-effort link to the commit on the source host"""
    location = provenance.source_location
    if not provenance.commit_sha or not location.startswith(('http://', 'https://')):
        return ''
    if location.endswith('.git'):
        location = location[:-len('.git')]
    return f"{location.rstrip('/')}/commit/{provenance.commit_sha}"


def _render_tag(image: str, tag: ResolvedTag) -> str:
    p = tag.provenance
    url = commit_url(p)
    if url:
        commit = f'<a href="{escape(url)}"><code>{escape(p.short_sha)}</code></a>'
    else:
        commit = f'<code>{escape(p.short_sha)}</code>'

    if tag.digest:
        delete = (
            '<form method="post" action="/delete">'
            f'<input type="hidden" name="Image" value="{escape(image)}">'
            f'<input type="hidden" name="DockerContentDigest" value="{escape(tag.digest)}">'
            '<button type="submit">delete</button>'
            '</form>'
        )
    else:
        delete = ''

    cells = [
        f'<code>{escape(tag.name)}</code>',
        escape(p.commit_date),
        commit,
        escape(p.ref),
        escape(p.commit_author),
        escape(p.message.splitlines()[0] if p.message else ''),
        escape(p.base_image),
        escape(p.env_value(BUILD_NAME_ENV)),
        delete,
    ]
    return '<tr>' + ''.join(f'<td>{c}</td>' for c in cells) + '</tr>'


def render_html(result: AggregationResult) -> str:
    """Render the overview page"""
    messages = '\n'.join(
        f'<div class="alert alert-{escape(m.level)}">{escape(m.text)}</div>'
        for m in result.messages
    )

    header = ''.join(
        f'<th>{h}</th>'
        for h in ('Tag', 'Date', 'Commit', 'Ref', 'Author', 'Message', 'Builder', 'Build', '')
    )
    sections = []
    for image in result.images:
        rows = '\n'.join(_render_tag(image.name, tag) for tag in image.tags)
        sections.append(
            f'<h2>{escape(image.name)}</h2>\n'
            f'<table>\n<tr>{header}</tr>\n{rows}\n</table>'
        )

    return PAGE.format(
        registry=escape(result.registry),
        messages=messages,
        images='\n'.join(sections),
    )


def render_json(result: AggregationResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


def render_table(result: AggregationResult) -> str:
    """Plain text listing for terminals"""
    lines: List[str] = [f"Registry: {result.registry}", '']

    for image in result.images:
        lines.append(image.name)
        lines.append(f"  {'Tag':<20} {'Date':<32} {'Commit':<10} {'Build':<24} {'Digest'}")
        for tag in image.tags:
            date_str = tag.provenance.commit_date or 'unknown'
            sha_str = tag.provenance.short_sha or '-'
            digest_str = tag.digest or 'unknown'
            build_str = tag.provenance.env_value(BUILD_NAME_ENV) or '-'
            lines.append(f"  {tag.name:<20} {date_str:<32} {sha_str:<10} {build_str:<24} {digest_str}")
        lines.append('')

    for message in result.messages:
        lines.append(f"[{message.level}] {message.text}")

    return '\n'.join(lines)
