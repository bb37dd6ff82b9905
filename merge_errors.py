#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""合并流程中使用的异常类型"""


class MergeError(Exception):
    """合并失败的基类"""


class ConfigurationError(MergeError):
    """有效的 XML 源少于两个"""


class FetchError(MergeError):
    """获取或读取某个源失败"""

    def __init__(self, message, source=None):
        super().__init__(message)
        self.source = source


class FeedParseError(MergeError):
    """XML 内容无法解析"""

    def __init__(self, message, source=None):
        super().__init__(message)
        self.source = source
