#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
g:id 标识符解析规则

解析器返回的标签名有两种形式：带前缀的 `g:id`，或拆成命名空间+本地名的
`{http://base.google.com/ns/1.0}id`。这里用一组按顺序执行的匹配规则来兼容两者，
第一个命中的规则决定结果。
"""

GOOGLE_NS = 'http://base.google.com/ns/1.0'
GOOGLE_PREFIX = 'g'
GID_TAG = 'g:id'


def namespace_of(tag):
    """返回 `{uri}local` 形式标签的命名空间，没有则返回 None"""
    if isinstance(tag, str) and tag.startswith('{'):
        return tag[1:].split('}', 1)[0]
    return None


def local_name(tag):
    """去掉 `{uri}` 部分后的本地名"""
    if isinstance(tag, str) and tag.startswith('{'):
        return tag.split('}', 1)[1]
    return tag


def qualified_name(tag):
    """把 Google 命名空间的标签还原成 `g:` 前缀形式，其它标签原样返回"""
    if namespace_of(tag) == GOOGLE_NS:
        return f"{GOOGLE_PREFIX}:{local_name(tag)}"
    return tag


def is_gid_tag(tag):
    return qualified_name(tag) == GID_TAG


def text_content(element):
    """元素及其所有子孙的文本拼接后去除首尾空白"""
    return ''.join(element.itertext()).strip()


class IdentifierRule:
    """标识符匹配规则：在 item 中查找候选元素"""

    name = 'rule'

    def find(self, item):
        raise NotImplementedError


class ExactTagRule(IdentifierRule):
    """直接子元素中标签为 g:id 的元素"""

    name = 'exact-tag'

    def __init__(self, tag=GID_TAG):
        self.tag = tag

    def find(self, item):
        for child in item:
            if qualified_name(child.tag) == self.tag:
                return child
        return None


class NamespacedLocalNameRule(IdentifierRule):
    """
    子孙元素中本地名为 id，且命名空间为 Google 命名空间（或标签以 g: 开头）的第一个元素
    """

    name = 'namespace-local-name'

    def __init__(self, local='id', namespace=GOOGLE_NS, prefix=GOOGLE_PREFIX):
        self.local = local
        self.namespace = namespace
        self.prefix = prefix

    def find(self, item):
        for element in item.iter():
            if element is item or not isinstance(element.tag, str):
                continue

            qname = qualified_name(element.tag)
            name_matches = local_name(element.tag) == self.local or qname == f"{self.prefix}:{self.local}"
            ns_matches = namespace_of(element.tag) == self.namespace or qname.startswith(f"{self.prefix}:")

            if name_matches and ns_matches:
                return element
        return None


DEFAULT_RULES = (ExactTagRule(), NamespacedLocalNameRule())


class IdentifierExtractor:
    def __init__(self, rules=DEFAULT_RULES):
        self.rules = list(rules)

    def extract(self, item):
        """
        提取 item 的合并键

        Args:
            item: item 元素

        Returns:
            去除首尾空白后的 g:id 文本；没有可用标识符时返回 None
        """
        for rule in self.rules:
            element = rule.find(item)
            if element is None:
                continue

            value = text_content(element)
            if value:
                return value
        return None


_default_extractor = IdentifierExtractor()


def extract_id(item):
    return _default_extractor.extract(item)
