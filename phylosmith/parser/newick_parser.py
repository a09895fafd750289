import ast
import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from phylosmith.exceptions import MalformedNewickError
from phylosmith.tree import ROOTED_COMMENT, UNROOTED_COMMENT, Node

logger = logging.getLogger(__name__)

# Comment tokens are separated by commas, semicolons or spaces outside quotes
_METADATA_TOKEN = re.compile(r"""(?:'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|[^,;\s'"])+""")


# ===================================================================
# 1. METADATA PROCESSING FUNCTIONS
# ===================================================================


def split_token(token: str) -> Tuple[str, Any]:
    """
    Split a metadata token into name and value parts.
    Handles both "name=value" and "name:value" formats.

    Args:
        token: A string token in format "name=value" or "name:value"

    Returns:
        Tuple of (name, parsed_value); a bare token maps to True
    """
    if "=" in token:
        name, value = token.split("=", 1)
    elif ":" in token:
        name, value = token.split(":", 1)
    else:
        return token, True

    try:
        parsed_value = ast.literal_eval(value)
    except (ValueError, SyntaxError):
        parsed_value = value

    return name, parsed_value


def parse_metadata(data: str) -> Dict[str, Any]:
    """
    Parse the content of a bracketed comment into a dictionary.

    Args:
        data: "key1=value1,key2=value2" or NHX "&&NHX:key1=value1:key2=value2";
            quoted values such as key='a b' may contain separators
    """
    data = data.strip()
    if data.startswith("&&NHX:"):
        tokens = data[6:].split(":")
    else:
        tokens = _METADATA_TOKEN.findall(data)

    metadata: Dict[str, Any] = {}
    for token in tokens:
        if token.strip():
            name, value = split_token(token.strip())
            metadata[name] = value
    return metadata


def flush_meta_buffer(meta_buffer: List[str], stack: List[Node]) -> None:
    """Attach the buffered comment to the node on top of the stack."""
    metadata = parse_metadata("".join(meta_buffer))
    if metadata and stack:
        stack[-1].values.update(metadata)
    meta_buffer.clear()


# ===================================================================
# 2. BUFFER PROCESSING FUNCTIONS
# ===================================================================


def flush_character_buffer(buffer: List[str], stack: List[Node]) -> None:
    if buffer and stack:
        stack[-1].name = "".join(buffer)
    buffer.clear()


def flush_length_buffer(buffer: List[str], stack: List[Node], position: int) -> None:
    """
    Parse the buffered branch length and assign it to the node on top of the stack.

    Raises:
        MalformedNewickError: If the buffer is empty or not a number
    """
    buffer_value = "".join(buffer).strip()
    try:
        stack[-1].length = float(buffer_value)
    except ValueError:
        raise MalformedNewickError(
            f"Invalid branch length '{buffer_value}'", position
        )
    buffer.clear()


def flush_buffer(buffer: List[str], stack: List[Node], mode: str, position: int) -> None:
    """
    Process the accumulated buffer based on the current parsing mode.
    """
    if mode == "character_reader":
        flush_character_buffer(buffer, stack)
    elif mode == "length_reader":
        flush_length_buffer(buffer, stack, position)


# ===================================================================
# 3. NODE STACK MANAGEMENT FUNCTIONS
# ===================================================================


def init_nodestack() -> List[Node]:
    """Start a new tree; the first node is the root."""
    return [Node(name="")]


def create_new_node(stack: List[Node]) -> List[Node]:
    """Open a new child of the node on top of the stack."""
    parent = stack[-1]
    new_node = Node()
    parent.children.append(new_node)
    new_node.parent = parent
    stack.append(new_node)
    return stack


def close_node(stack: List[Node]) -> List[Node]:
    stack.pop()
    return stack


# ===================================================================
# 4. CORE PARSING FUNCTIONS
# ===================================================================


def _parse_newick(tokens: str) -> List[Node]:
    """
    Return the list of trees in the token string, character by character.

    Raises:
        MalformedNewickError: On unbalanced parentheses, misplaced delimiters,
            unterminated quotes or comments, or a missing terminating semicolon.
    """
    trees: List[Node] = []
    buffer: List[str] = []
    meta_buffer: List[str] = []
    mode: str = "character_reader"
    meta_quote = ""
    node_stack: List[Node] = init_nodestack()
    depth = 0
    pending = False
    index = 0

    while index < len(tokens):
        char = tokens[index]

        if mode == "quoted_reader":
            if char == "'":
                if index + 1 < len(tokens) and tokens[index + 1] == "'":
                    buffer.append("'")
                    index += 1
                else:
                    mode = "character_reader"
            else:
                buffer.append(char)
            index += 1
            continue

        if mode == "metadata_reader":
            if meta_quote:
                meta_buffer.append(char)
                if char == "\\" and index + 1 < len(tokens):
                    meta_buffer.append(tokens[index + 1])
                    index += 1
                elif char == meta_quote:
                    meta_quote = ""
            elif char == "]":
                flush_meta_buffer(meta_buffer, node_stack)
                mode = "character_reader"
            else:
                # quotes only open at the start of a value
                if char in "'\"" and (not meta_buffer or meta_buffer[-1] in "=:,; "):
                    meta_quote = char
                meta_buffer.append(char)
            index += 1
            continue

        if char.isspace():
            index += 1
            continue

        pending = True

        if char == "(":
            top = node_stack[-1]
            if buffer or top.children or top.name:
                raise MalformedNewickError("Unexpected '('", index)
            depth += 1
            create_new_node(node_stack)
            mode = "character_reader"

        elif char == ")":
            if depth == 0:
                raise MalformedNewickError("Unbalanced parentheses: unexpected ')'", index)
            flush_buffer(buffer, node_stack, mode, index)
            close_node(node_stack)
            depth -= 1
            mode = "character_reader"

        elif char == ",":
            if depth == 0:
                raise MalformedNewickError("Unexpected ',' outside parentheses", index)
            flush_buffer(buffer, node_stack, mode, index)
            close_node(node_stack)
            create_new_node(node_stack)
            mode = "character_reader"

        elif char == ":":
            if mode == "length_reader":
                raise MalformedNewickError("Unexpected ':'", index)
            flush_buffer(buffer, node_stack, mode, index)
            mode = "length_reader"

        elif char == "[":
            flush_buffer(buffer, node_stack, mode, index)
            mode = "metadata_reader"

        elif char == "]":
            raise MalformedNewickError("Unexpected ']'", index)

        elif char == "'" and mode == "character_reader":
            if buffer:
                raise MalformedNewickError("Unexpected quote inside label", index)
            mode = "quoted_reader"

        elif char == ";":
            if depth != 0:
                raise MalformedNewickError(
                    f"Unbalanced parentheses: {depth} unclosed '('", index
                )
            flush_buffer(buffer, node_stack, mode, index)
            trees.append(node_stack[0])
            node_stack = init_nodestack()
            buffer = []
            mode = "character_reader"
            pending = False

        else:
            buffer.append(char)

        index += 1

    if mode == "quoted_reader":
        raise MalformedNewickError("Unterminated quoted label", len(tokens))
    if mode == "metadata_reader":
        raise MalformedNewickError("Unterminated '[' comment", len(tokens))
    if pending:
        if depth != 0:
            raise MalformedNewickError(
                f"Unbalanced parentheses: {depth} unclosed '('", len(tokens)
            )
        raise MalformedNewickError("Missing terminating ';'", len(tokens))
    if not trees:
        raise MalformedNewickError("No tree found in input")

    return trees


def _finalize_tree(
    tree: Node,
    internal_labels_as_support: bool,
    encoding: Optional[Dict[str, int]],
) -> None:
    """Apply rooting comments, support labels and leaf validation to a parsed tree."""
    if tree.values.pop(ROOTED_COMMENT, None):
        tree.rooted = True
    elif tree.values.pop(UNROOTED_COMMENT, None):
        tree.rooted = False
    else:
        tree.rooted = len(tree.children) == 2

    seen: set[str] = set()
    for nd in tree.traverse():
        if nd.children:
            if internal_labels_as_support and nd.name and "support" not in nd.values:
                try:
                    support = float(nd.name)
                except ValueError:
                    continue
                if not math.isnan(support):
                    nd.values["support"] = support
                    nd.name = ""
            continue
        if not nd.name:
            raise MalformedNewickError("Leaf without a label")
        if nd.name in seen:
            raise MalformedNewickError(f"Duplicate leaf label '{nd.name}'")
        seen.add(nd.name)

    tree.initialize_split_indices(encoding)


# ===================================================================
# 5. PUBLIC API FUNCTIONS
# ===================================================================


def parse_newick(
    tokens: str,
    encoding: Optional[Dict[str, int]] = None,
    force_list: bool = False,
    internal_labels_as_support: bool = True,
) -> Union[Node, List[Node]]:
    """
    Parse a Newick string into a tree or list of trees.

    Args:
        tokens: Newick text; several trees may follow each other, each ending with ';'
        encoding: Optional taxon encoding shared by all trees; defaults to the
            sorted leaf names of each tree
        force_list: Always return a list even for a single tree
        internal_labels_as_support: Read numeric internal node labels as support values

    Returns:
        Single Node or list of Nodes representing the parsed tree(s)

    Raises:
        MalformedNewickError: If the text is not valid Newick.
    """
    trees = _parse_newick(tokens)
    for tree in trees:
        _finalize_tree(tree, internal_labels_as_support, encoding)
    logger.debug("Parsed %d tree(s) from Newick input", len(trees))

    if len(trees) == 1 and not force_list:
        return trees[0]
    return trees
