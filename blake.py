"""
Situated blogging platform: static site generator for a notebook of dated
markdown posts. Run with ``blake build SOURCE_DIR OUTPUT_DIR``.
"""

import click
import collections
import datetime
import dateutil.tz
import html
import jinja2
import json
import os
from os import path
import shutil
import sys
import tempfile
import xml.etree.ElementTree as ET

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.token import Token
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.footnote.index import footnote_tail

#### Settings

# Post file names (without extension) are their publication timestamps.
post_date_format = "%Y-%m-%d-%H:%M"
post_suffix = ".md"
rendered_suffix = ".html"

default_templates_dir = path.join(path.dirname(path.abspath(__file__)), "templates")

default_config = {
    'site_url': "https://notebook.example.com",
    'site_title': "notebook",
    'author_name': "Anonymous",
    'author_email': None,
    'timezone': "UTC",
}


#### CLI

# Commands later hook into this as @cli.command()
@click.group()
def cli():
    pass


##### Utilities


def log(msg):
    """Log messages to STDERR."""
    print(str(msg), file=sys.stderr)


##### Errors


class BuildError(Exception):
    """Base for every failure that aborts a build."""


class IoError(BuildError):
    """A file could not be read, written, listed or deleted."""

    def __init__(self, operation, file_path, cause):
        super().__init__(f"Could not {operation} {file_path}: {cause}")
        self.operation = operation
        self.path = file_path


class PostNameError(BuildError):
    """A post file name is not a valid publication timestamp."""


class EncodingError(BuildError):
    """Text was not valid UTF-8."""


class TemplateError(BuildError):
    """A template was missing, broken, or asked for an absent value."""


class StructuralError(BuildError):
    """The syntax tree has a shape the parser should never produce."""


class ConfigError(BuildError):
    """Site configuration could not be loaded."""


#### Syntax tree

# Node values. Footnote tags are the labels used in the markdown source.
Document = collections.namedtuple('Document', [])
Heading = collections.namedtuple('Heading', ['level', 'open', 'close'])
Paragraph = collections.namedtuple('Paragraph', ['open', 'close'])
Text = collections.namedtuple('Text', ['content'])
FootnoteDefinition = collections.namedtuple('FootnoteDefinition', ['tag'])
FootnoteReference = collections.namedtuple('FootnoteReference', ['tag', 'token'])
HtmlInline = collections.namedtuple('HtmlInline', ['content'])
# Everything else is carried through untouched: a Container is an open/close
# token pair with child nodes, a Leaf is a single self-contained token.
Container = collections.namedtuple('Container', ['open', 'close'])
Leaf = collections.namedtuple('Leaf', ['token'])


def is_inline(value):
    """Does this node value belong inside a paragraph-like block?"""
    if isinstance(value, (Text, HtmlInline, FootnoteReference)):
        return True
    if isinstance(value, Container):
        return not value.open.block
    if isinstance(value, Leaf):
        return not value.token.block
    return False


class Node:
    __slots__ = ('value', 'parent', 'children')

    def __init__(self, value):
        self.value = value
        self.parent = None
        self.children = []


class SyntaxTree:
    """
    Arena holding every node of one parsed document.

    Nodes refer to each other by their index in ``nodes``; a node's parent is
    an index as well, or None for roots and detached nodes. Detaching never
    frees a slot, so handles stay valid for the lifetime of the tree.

    ``env`` is the markdown-it environment of the parse that produced the
    tree. The stock footnote renderer reads its bookkeeping from there.
    """

    def __init__(self, env=None):
        self.nodes = []
        self.env = {} if env is None else env

    def __getitem__(self, node_id):
        return self.nodes[node_id]

    def alloc(self, value):
        """Create a new, parentless node and return its handle."""
        self.nodes.append(Node(value))
        return len(self.nodes) - 1

    def append(self, parent_id, child_id):
        """Make ``child_id`` the last child of ``parent_id``, moving it if needed."""
        self.detach(child_id)
        self.nodes[parent_id].children.append(child_id)
        self.nodes[child_id].parent = parent_id

    def detach(self, node_id):
        """Remove a node (and its subtree) from its parent."""
        node = self.nodes[node_id]
        if node.parent is not None:
            self.nodes[node.parent].children.remove(node_id)
            node.parent = None

    def children(self, node_id):
        return list(self.nodes[node_id].children)

    def descendants(self, node_id):
        """
        Generator yielding ``node_id`` and everything below it, in document
        (pre-)order.
        """
        stack = [node_id]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self.nodes[current].children))


#### Markdown parsing


def _tilde_strikethrough(state, silent):
    """
    Inline rule for ``~text~``. Runs of two or more tildes are left to the
    stock strikethrough rule.
    """
    start = state.pos
    maximum = state.posMax
    if state.src[start] != "~":
        return False
    # Don't run any pairs in validation mode
    if silent:
        return False
    if start + 2 >= maximum or state.src[start + 1] == "~":
        return False

    state.pos = start + 1
    found = False
    while state.pos < maximum:
        if state.src[state.pos] == "~":
            found = True
            break
        state.md.inline.skipToken(state)
    end = state.pos

    if (
        not found
        or (end + 1 < maximum and state.src[end + 1] == "~")
        or state.src[start + 1].isspace()
        or state.src[end - 1].isspace()
    ):
        state.pos = start
        return False

    state.posMax = end
    state.pos = start + 1
    token = state.push("s_open", "del", 1)
    token.markup = "~"
    state.md.inline.tokenize(state)
    token = state.push("s_close", "del", -1)
    token.markup = "~"
    state.pos = end + 1
    state.posMax = maximum
    return True


def _strikethrough_as_del(state):
    """Core rule: render every strikethrough as <del>, however many tildes."""
    for token in state.tokens:
        if token.type == "inline" and token.children:
            for child in token.children:
                if child.type in ("s_open", "s_close"):
                    child.tag = "del"


def strikethrough_plugin(md):
    md.inline.ruler.before("strikethrough", "tilde_strikethrough", _tilde_strikethrough)
    md.core.ruler.after("inline", "strikethrough_del", _strikethrough_as_del)


def make_markdown():
    """
    Build the markdown parser used for posts: CommonMark with footnotes,
    strikethrough and smart typography.

    Footnote definitions are left where they were written (no moving them
    to the end of the document), and inline ``^[...]`` footnotes are off.
    """
    return (
        MarkdownIt("commonmark", {"typographer": True})
        .enable(["strikethrough", "replacements", "smartquotes"])
        .use(footnote_plugin)
        .use(strikethrough_plugin)
        .disable(["footnote_inline", "footnote_tail"])
    )


def _open_value(token):
    if token.type == "heading_open":
        return Heading(int(token.tag[1:]), token, None)
    elif token.type == "paragraph_open":
        return Paragraph(token, None)
    elif token.type == "footnote_reference_open":
        return FootnoteDefinition(token.meta["label"])
    else:
        return Container(token, None)


def _leaf_value(token):
    if token.type == "text":
        return Text(token.content)
    elif token.type == "html_inline":
        return HtmlInline(token.content)
    elif token.type == "footnote_ref":
        return FootnoteReference(token.meta.get("label"), token)
    else:
        return Leaf(token)


def _append_tokens(tree, parent_id, tokens):
    """
    Load a flat token stream into the tree below ``parent_id``, following
    open/close nesting. Inline tokens are unpacked so their children become
    children of the enclosing block.
    """
    stack = [parent_id]
    for token in tokens:
        if token.nesting == 1:
            node_id = tree.alloc(_open_value(token))
            tree.append(stack[-1], node_id)
            stack.append(node_id)
        elif token.nesting == -1:
            node = tree[stack.pop()]
            if not isinstance(node.value, FootnoteDefinition):
                node.value = node.value._replace(close=token)
        elif token.type == "inline":
            _append_tokens(tree, stack[-1], token.children or [])
        else:
            node_id = tree.alloc(_leaf_value(token))
            tree.append(stack[-1], node_id)


def parse_markdown(md, text):
    """
    Parse markdown text into a new SyntaxTree. Returns ``(tree, root)``.
    """
    env = {}
    tokens = md.parse(text, env)
    tree = SyntaxTree(env)
    root = tree.alloc(Document())
    _append_tokens(tree, root, tokens)
    return tree, root


#### HTML rendering


RenderOptions = collections.namedtuple('RenderOptions', ['footnotes', 'unsafe'])

# Footnotes rendered the stock way, raw HTML omitted.
DEFAULT_RENDER_OPTIONS = RenderOptions(footnotes=True, unsafe=False)
# Final output of a post: sidenotes have already replaced footnotes, and are
# themselves raw HTML.
POST_RENDER_OPTIONS = RenderOptions(footnotes=False, unsafe=True)

raw_html_omitted = "<!-- raw HTML omitted -->"


def _raw_html_token(token_type, content, options):
    if not options.unsafe:
        content = raw_html_omitted + ("\n" if token_type == "html_block" else "")
    return Token(token_type, "", 0, content=content, block=token_type == "html_block")


def _inline_tokens(tree, node_id, options, out):
    value = tree[node_id].value
    if isinstance(value, Text):
        out.append(Token("text", "", 0, content=value.content))
    elif isinstance(value, HtmlInline):
        out.append(_raw_html_token("html_inline", value.content, options))
    elif isinstance(value, FootnoteReference):
        out.append(value.token)
    elif isinstance(value, Container):
        out.append(value.open)
        for child_id in tree[node_id].children:
            _inline_tokens(tree, child_id, options, out)
        out.append(value.close)
    else:
        out.append(value.token)


def _child_tokens(tree, node_id, options, out):
    """Serialize children, gathering each run of inline nodes into one inline token."""
    run = []
    for child_id in tree[node_id].children:
        if is_inline(tree[child_id].value):
            _inline_tokens(tree, child_id, options, run)
            continue
        if run:
            out.append(Token("inline", "", 0, children=run))
            run = []
        _block_tokens(tree, child_id, options, out)
    if run:
        out.append(Token("inline", "", 0, children=run))


def _block_tokens(tree, node_id, options, out):
    value = tree[node_id].value
    if isinstance(value, Document):
        _child_tokens(tree, node_id, options, out)
    elif isinstance(value, FootnoteDefinition):
        if options.footnotes:
            out.append(Token("footnote_reference_open", "", 1, meta={"label": value.tag}))
            _child_tokens(tree, node_id, options, out)
            out.append(Token("footnote_reference_close", "", -1))
        else:
            _child_tokens(tree, node_id, options, out)
    elif isinstance(value, (Heading, Paragraph, Container)):
        out.append(value.open)
        _child_tokens(tree, node_id, options, out)
        out.append(value.close)
    elif value.token.type == "html_block":
        out.append(_raw_html_token("html_block", value.token.content, options))
    else:
        out.append(value.token)


def render_html(md, tree, options, root=0):
    """
    Serialize the tree below ``root`` to an HTML string.

    The tree is flattened back into a markdown-it token stream and handed to
    the parser's own HTML renderer. With ``options.footnotes`` the footnote
    definitions are collected into a footnote section at the end of the
    output, as the parser would normally do.
    """
    tokens = []
    _block_tokens(tree, root, options, tokens)
    if options.footnotes:
        state = StateCore("", md, tree.env, tokens)
        footnote_tail(state)
        tokens = state.tokens
    return md.renderer.render(tokens, md.options, tree.env)


#### Titles and sidenotes


def extract_title(tree, root=0):
    """
    Return the text of the first level-1 heading, or None if there isn't one.

    Only text payloads are collected (including image alt text); formatting
    is flattened away.
    """
    for node_id in tree.descendants(root):
        value = tree[node_id].value
        if isinstance(value, Heading) and value.level == 1:
            return "".join(_text_payloads(tree, node_id))
    return None


def _text_payloads(tree, node_id):
    for d in tree.descendants(node_id):
        value = tree[d].value
        if isinstance(value, Text):
            yield value.content
        elif isinstance(value, Leaf) and value.token.type == "image":
            # Alt text lives in the image token's own children.
            for child in value.token.children or []:
                if child.type == "text":
                    yield child.content


def find_footnote_definitions(tree, root=0):
    """
    Map footnote tag to definition node. If a tag is defined more than once,
    the last definition wins.
    """
    footnotes = {}
    for node_id in tree.descendants(root):
        value = tree[node_id].value
        if isinstance(value, FootnoteDefinition):
            footnotes[value.tag] = node_id
    return footnotes


def render_sidenote_html(tag, fragment):
    """
    Wrap rendered footnote content in sidenote markup.

    From https://edwardtufte.github.io/tufte-css/#sidenotes: a sidenote is a
    label and dummy checkbox placed where the reference goes, immediately
    followed by a span with class ``sidenote`` holding the content. The
    ``sn-`` id is shared by the label's ``for`` and the checkbox's ``id``.
    """
    name = html.escape(tag)
    return (
        f'<span><label class="margin-toggle sidenote-number" for="sn-{name}"></label>'
        f'<input class="margin-toggle" id="sn-{name}" type="checkbox"/>'
        f'<span class="sidenote">{fragment}</span></span>'
    )


def render_footnote_definition_as_sidenote(md, tree, tag, node_id, options):
    """
    Render one footnote definition as a sidenote value.

    A definition has one child, a paragraph; the paragraph's children are
    moved under a fresh document root and rendered on their own.
    """
    children = tree.children(node_id)
    if len(children) > 1:
        raise StructuralError(
            f"Footnote definition [^{tag}] has {len(children)} children; "
            "footnote definitions have one child, a paragraph."
        )
    document = tree.alloc(Document())
    for child_id in children:
        if isinstance(tree[child_id].value, Paragraph):
            for grandchild_id in tree.children(child_id):
                tree.append(document, grandchild_id)
        else:
            tree.append(document, child_id)
    fragment = render_html(md, tree, options, root=document)
    return HtmlInline(render_sidenote_html(tag, fragment))


def replace_footnote_references(tree, sidenotes, root=0):
    """
    Swap each footnote reference with a known tag for its sidenote, in place.
    """
    for node_id in tree.descendants(root):
        node = tree[node_id]
        if isinstance(node.value, FootnoteReference) and node.value.tag in sidenotes:
            node.value = sidenotes[node.value.tag]


def render_sidenotes(md, tree, options, root=0):
    """
    Turn every footnote in the tree into a sidenote.

    Definitions are removed from the tree and rendered (without footnote
    handling, so sidenotes can't nest); each reference is replaced by the
    rendered sidenote. Every reference to a tag gets its own copy of the
    markup, so repeated references produce repeated ``sn-`` ids.
    """
    footnotes = find_footnote_definitions(tree, root)
    # Shadowed duplicate definitions must not reach the output either.
    for node_id in list(tree.descendants(root)):
        value = tree[node_id].value
        if isinstance(value, FootnoteDefinition) and footnotes[value.tag] != node_id:
            tree.detach(node_id)

    options = options._replace(footnotes=False)
    rendered = {}
    for tag, node_id in footnotes.items():
        tree.detach(node_id)
        rendered[tag] = render_footnote_definition_as_sidenote(md, tree, tag, node_id, options)

    replace_footnote_references(tree, rendered, root)


#### Templates


def make_templates(templates_dir):
    """
    Build the template registry for one build. Missing context values are
    errors, not blanks.
    """
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(templates_dir),
        autoescape=jinja2.select_autoescape(),
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
    )


def render_template(templates, name, **context):
    try:
        return templates.get_template(name).render(**context)
    except jinja2.TemplateError as e:
        raise TemplateError(f"Could not render template {name}: {e!r}") from e


#### Loading


def load_config(source_dir):
    """
    Load site settings from ``config.json`` in the source dir, if present,
    over the defaults. Returns a dict with the same keys as
    ``default_config`` plus ``tz``, the resolved timezone.
    """
    config = dict(default_config)
    config_path = path.join(source_dir, 'config.json')
    if path.isfile(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as cf:
                loaded = json.loads(cf.read())
        except (OSError, ValueError) as e:
            raise ConfigError(f"Could not load {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Expected a JSON object in {config_path}")
        if extra_config_keys := loaded.keys() - default_config.keys():
            log(f"WARN: Unrecognized configuration keys in config.json: {extra_config_keys!r}")
        config.update({k: v for k, v in loaded.items() if k in default_config})
    else:
        log(f"INFO: No config.json in {source_dir}; using defaults")

    tz = dateutil.tz.gettz(config['timezone'])
    if tz is None:
        raise ConfigError(f"Unknown timezone: {config['timezone']!r}")
    config['tz'] = tz
    config['site_url'] = config['site_url'].rstrip('/')
    return config


def parse_post_date(name, tz=dateutil.tz.UTC):
    try:
        date = datetime.datetime.strptime(name, post_date_format)
    except ValueError as e:
        raise PostNameError(f"Post name is not a valid date ({post_date_format}): {name!r}") from e
    return date.replace(tzinfo=tz)


def load_post(post_path, tz=dateutil.tz.UTC):
    """
    Identify a post from its path. Returns a dict of:

    - name: File stem, which is also the publication timestamp
    - path: Path to the markdown source
    - date: Timezone-aware datetime parsed from the name
    """
    name, _ext = path.splitext(path.basename(post_path))
    return {'name': name, 'path': post_path, 'date': parse_post_date(name, tz)}


def list_post_files(posts_dir):
    """
    Sorted list of paths of markdown files in the posts dir.
    """
    try:
        filenames = sorted(os.listdir(posts_dir))
    except OSError as e:
        raise IoError("list", posts_dir, e) from e
    return [
        path.join(posts_dir, fn) for fn in filenames
        if fn.endswith(post_suffix) and path.isfile(path.join(posts_dir, fn))
    ]


def read_source(file_path):
    try:
        with open(file_path, 'rb') as f:
            raw = f.read()
    except OSError as e:
        raise IoError("read", file_path, e) from e
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        raise EncodingError(f"Post is not valid UTF-8: {file_path}: {e}") from e


#### Rendering posts


def post_url(name):
    return f"/posts/{name}{rendered_suffix}"


def render_markdown(md, text):
    """
    Render post markdown to HTML. Returns ``(title, body)``.

    The title is taken before sidenotes are rendered so that heading text is
    exactly as written.
    """
    tree, root = parse_markdown(md, text)
    title = extract_title(tree, root)
    render_sidenotes(md, tree, POST_RENDER_OPTIONS, root)
    return title, render_html(md, tree, POST_RENDER_OPTIONS, root)


def render_post(md, post):
    """
    Render one loaded post, returning a dict of name, title, body, date and url.
    """
    title, body = render_markdown(md, read_source(post['path']))
    return {
        'name': post['name'],
        'title': title,
        'body': body,
        'date': post['date'],
        'url': post_url(post['name']),
    }


def write_if_changed(abs_path, content):
    """
    Write to the path if the contents differ.

    The new file is written next to the destination and moved into place, so
    the destination is either the old file or the complete new one.
    """
    try:
        newbytes = content.encode('utf-8')
    except UnicodeEncodeError as e:
        raise EncodingError(f"Rendered output is not valid UTF-8: {abs_path}: {e}") from e

    try:
        if path.exists(abs_path):
            with open(abs_path, 'rb') as f:
                oldbytes = f.read()
        else:
            oldbytes = None

        if newbytes == oldbytes:
            return

        fd, tmp_path = tempfile.mkstemp(
            dir=path.dirname(abs_path), prefix='.' + path.basename(abs_path), suffix='.tmp'
        )
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(newbytes)
            os.replace(tmp_path, abs_path)
        except BaseException:
            os.remove(tmp_path)
            raise
    except OSError as e:
        raise IoError("write", abs_path, e) from e

    if oldbytes is None:
        print(f"Creating {abs_path}")
    else:
        print(f"Updating {abs_path}")


def write_post_page(templates, rendered, dest):
    page = render_template(
        templates, 'post.html',
        post=rendered['body'],
        title=rendered['title'],
        date=rendered['date'].strftime('%Y-%m-%d'),
    )
    write_if_changed(dest, page)


#### Building


def output_layout(output_dir):
    return {
        'posts': path.join(output_dir, 'posts'),
        'static': path.join(output_dir, 'static'),
        'index': path.join(output_dir, 'index.html'),
        'feed': path.join(output_dir, 'feed.xml'),
    }


def sort_posts_desc(posts):
    """Most recent first; posts with equal dates keep their relative order."""
    return sorted(posts, key=lambda p: p['date'], reverse=True)


def copy_static_resources(static_dir, output_static_dir):
    """Replace the output static dir with a fresh copy of the source one."""
    try:
        if path.exists(output_static_dir):
            shutil.rmtree(output_static_dir)
        shutil.copytree(static_dir, output_static_dir)
    except OSError as e:
        raise IoError("copy static files to", output_static_dir, e) from e


def build_posts(md, templates, posts_dir, output_posts_dir, tz=dateutil.tz.UTC):
    """
    Render every post in ``posts_dir`` to ``output_posts_dir``, returning the
    rendered posts in file name order.
    """
    try:
        os.makedirs(output_posts_dir, exist_ok=True)
    except OSError as e:
        raise IoError("create", output_posts_dir, e) from e

    # Check every name before writing anything: one bad file name means the
    # corpus isn't what we think it is.
    posts = [load_post(post_path, tz) for post_path in list_post_files(posts_dir)]

    rendered_posts = []
    for post in posts:
        rendered = render_post(md, post)
        write_post_page(
            templates, rendered,
            path.join(output_posts_dir, post['name'] + rendered_suffix)
        )
        rendered_posts.append(rendered)
    return rendered_posts


def remove_deleted_posts(posts_dir, output_posts_dir):
    """
    Delete rendered pages whose source post no longer exists. Returns the
    list of deleted paths.
    """
    try:
        filenames = sorted(os.listdir(output_posts_dir))
    except OSError as e:
        raise IoError("list", output_posts_dir, e) from e

    deleted = []
    for filename in filenames:
        stem, ext = path.splitext(filename)
        if ext != rendered_suffix:
            continue
        if path.isfile(path.join(posts_dir, stem + post_suffix)):
            continue
        rendered_path = path.join(output_posts_dir, filename)
        try:
            os.remove(rendered_path)
        except OSError as e:
            raise IoError("delete", rendered_path, e) from e
        print(f"Deleting stale {rendered_path}")
        deleted.append(rendered_path)
    return deleted


def generate_index(templates, posts_desc):
    return render_template(templates, 'index.html', posts=posts_desc)


def generate_feed(posts_desc, config):
    """
    Given posts in descending chronological order, generate an Atom XML feed.
    """
    site_url = config['site_url']
    feed_url = f"{site_url}/feed.xml"

    root = ET.Element('feed', {'xmlns': "http://www.w3.org/2005/Atom"})
    ET.SubElement(root, 'id').text = f"{site_url}/"
    ET.SubElement(root, 'title').text = config['site_title']
    author = ET.SubElement(root, 'author')
    ET.SubElement(author, 'name').text = config['author_name']
    if config['author_email']:
        ET.SubElement(author, 'email').text = config['author_email']
    ET.SubElement(root, 'link', rel='alternate', hreflang='en', href=site_url)
    ET.SubElement(root, 'link', rel='self', hreflang='en', href=feed_url)
    if posts_desc:
        updated = max(post['date'] for post in posts_desc)
        ET.SubElement(root, 'updated').text = updated.isoformat(sep='T')

    for post in posts_desc:
        # Absolute URL, not absolute path
        permalink = site_url + post['url']
        # No separate edit tracking yet: updated is the publication date.
        date_str = post['date'].isoformat(sep='T')
        entry = ET.SubElement(root, 'entry')
        ET.SubElement(entry, 'id').text = permalink
        ET.SubElement(entry, 'title').text = post['title'] or post['name']
        ET.SubElement(entry, 'link', href=permalink)
        ET.SubElement(entry, 'updated').text = date_str
        ET.SubElement(entry, 'published').text = date_str
        ET.SubElement(entry, 'content', type='html', src=permalink).text = post['body']
    return "<?xml version='1.0' encoding='UTF-8'?>\n" + ET.tostring(root, encoding="unicode")


def build(source_dir, output_dir, templates_dir=default_templates_dir):
    """
    Build the whole site. Returns the rendered posts, most recent first.

    - Copies ``SOURCE/static`` (if present) to ``OUTPUT/static``
    - Renders ``SOURCE/posts/*.md`` to ``OUTPUT/posts/*.html``
    - Deletes rendered posts whose source is gone
    - Writes ``OUTPUT/index.html`` and ``OUTPUT/feed.xml``
    """
    config = load_config(source_dir)
    md = make_markdown()
    templates = make_templates(templates_dir)
    layout = output_layout(output_dir)
    posts_dir = path.join(source_dir, 'posts')
    static_dir = path.join(source_dir, 'static')

    if path.isdir(static_dir):
        copy_static_resources(static_dir, layout['static'])

    rendered_posts = build_posts(md, templates, posts_dir, layout['posts'], config['tz'])
    remove_deleted_posts(posts_dir, layout['posts'])

    posts_desc = sort_posts_desc(rendered_posts)
    write_if_changed(layout['index'], generate_index(templates, posts_desc))
    write_if_changed(layout['feed'], generate_feed(posts_desc, config))

    log(f"INFO: Processed {len(posts_desc)} posts")
    return posts_desc


#### Command: build


@cli.command(name='build')
@click.argument('source_dir', type=click.Path(exists=True, file_okay=False))
@click.argument('output_dir', type=click.Path(file_okay=False))
@click.option('--templates', 'templates_dir', default=default_templates_dir,
              type=click.Path(exists=True, file_okay=False),
              help="Directory holding post.html and index.html")
def cmd_build(source_dir, output_dir, templates_dir):
    """Build the site from SOURCE_DIR into OUTPUT_DIR."""
    try:
        build(source_dir, output_dir, templates_dir)
    except BuildError as e:
        log(f"ERROR: {e}")
        sys.exit(1)


#### Main


if __name__ == '__main__':
    cli()
