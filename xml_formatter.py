#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
基于正则的 XML 缩进

只做外观上的处理：在相邻标签之间断行，再按行估算缩进层级。
这不是校验型的格式化器，注释、CDATA 或文本中带换行的内容可能缩进不准，但内容不会被改动。
"""

import re

INDENT = '  '

_TAG_BOUNDARY = re.compile(r'(>)(<)(/*)', re.ASCII)
_OPEN_AND_CLOSE = re.compile(r'.+</\w[^>]*>$', re.ASCII)
_CLOSING = re.compile(r'^</\w', re.ASCII)
# 自闭合标签 (<tag/>) 的 '>' 前是 '/'，不会匹配
_OPENING = re.compile(r'^<\w[^>]*[^/]>.*$', re.ASCII)


def format_xml(xml_text, indent=INDENT):
    """
    对序列化后的 XML 文本做缩进

    Args:
        xml_text: XML 字符串
        indent: 每一层的缩进字符串

    Returns:
        带换行和缩进的 XML 字符串
    """
    formatted = _TAG_BOUNDARY.sub(r'\1\n\2\3', xml_text)

    pad = 0
    lines = []
    for line in formatted.split('\n'):
        step = 0
        if _OPEN_AND_CLOSE.match(line):
            step = 0
        elif _CLOSING.match(line) and pad > 0:
            pad -= 1
        elif _OPENING.match(line):
            step = 1

        lines.append(indent * pad + line)
        pad += step

    return '\n'.join(lines)
