"""Trie data structure for entity name prefix matching.

Built for incremental character reference decoding: the decoder keeps a
single node between characters (and between ``feed`` calls), so it can
reject an impossible prefix as soon as the next character arrives and never
needs to buffer more than the longest entity name.

The trie maps entity names (without ``&`` or ``;``) to ``Entity`` records.
"""


class TrieNode:
    """Single node in the trie tree."""
    __slots__ = ("children", "entity")

    def __init__(self):
        self.children = {}  # char -> TrieNode
        self.entity = None  # Entity ending at this node, if any


class Trie:
    """Trie for entity name lookup and longest-prefix matching.

    Usage:
        trie = Trie(table)  # name -> Entity

        # Longest name usable at the start of the text
        name, entity = trie.longest_prefix_item("aeligtest")
        # Returns ("aelig", <Entity aelig>)
    """

    __slots__ = ("root",)

    def __init__(self, entities):
        """Build trie from an entity name -> Entity mapping."""
        self.root = TrieNode()
        for name, entity in entities.items():
            self._insert(name, entity)

    def _insert(self, name, entity):
        node = self.root
        children = node.children
        for char in name:
            if char not in children:
                children[char] = TrieNode()
            node = children[char]
            children = node.children
        node.entity = entity

    def longest_prefix_item(self, text):
        """Find the longest entity name usable at the start of text.

        Names that do not require a terminator match anywhere. Names that do
        require one only match when the next character of text is ``;``.

        Args:
            text: string starting with entity name (without leading '&')

        Raises:
            KeyError: if no entity name matches any prefix of text

        Returns:
            tuple: (entity_name, Entity)
        """
        node = self.root
        longest_match_len = 0
        longest_entity = None
        children = node.children
        length = len(text)

        for i, char in enumerate(text):
            if char not in children:
                break
            node = children[char]
            entity = node.entity
            if entity is not None:
                terminated = i + 1 < length and text[i + 1] == ";"
                if terminated or not entity.requires_terminator:
                    longest_match_len = i + 1
                    longest_entity = entity
            children = node.children

        if longest_match_len == 0:
            raise KeyError(f"No entity prefix match in '{text}'")

        return text[:longest_match_len], longest_entity

    def __contains__(self, name):
        node = self.root
        for char in name:
            node_children = node.children
            if char not in node_children:
                return False
            node = node_children[char]
        return node.entity is not None

    def __getitem__(self, name):
        """Get the Entity for an exact name.

        Raises:
            KeyError: if entity not found
        """
        node = self.root
        for char in name:
            node_children = node.children
            if char not in node_children:
                raise KeyError(name)
            node = node_children[char]
        if node.entity is None:
            raise KeyError(name)
        return node.entity
