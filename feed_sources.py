#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
XML 源的获取与解析

每个源是一个远程 URL 或本地文件。所有源并发获取，全部完成后才返回；
任何一个源失败都会让整个合并中止。
"""

import io
import logging
import os
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import feedparser
import requests

from merge_errors import FeedParseError, FetchError

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 30
USER_AGENT = "GID-RSS-Merger/1.0"

URL_SOURCE = 'url'
FILE_SOURCE = 'file'


@dataclass
class FeedSource:
    """一个输入源：URL 或本地文件"""
    kind: str = URL_SOURCE
    value: str = ''
    path: Optional[str] = None

    @classmethod
    def from_url(cls, url):
        return cls(kind=URL_SOURCE, value=url or '')

    @classmethod
    def from_file(cls, path):
        if not path:
            return cls(kind=FILE_SOURCE)
        return cls(kind=FILE_SOURCE, value=os.path.basename(str(path)), path=str(path))

    @classmethod
    def from_arg(cls, value):
        """命令行参数：http(s) 开头的视为 URL，其余视为本地文件路径"""
        text = (value or '').strip()
        if text.lower().startswith(('http://', 'https://')):
            return cls.from_url(text)
        return cls.from_file(text)

    @property
    def is_configured(self):
        if self.kind == URL_SOURCE:
            return self.value.strip() != ''
        if self.kind == FILE_SOURCE:
            return bool(self.path)
        return False

    @property
    def display_name(self):
        if self.kind == URL_SOURCE:
            return self.value.strip()
        return self.value or os.path.basename(self.path or '')


class FeedFetcher:
    def __init__(self, timeout=FETCH_TIMEOUT, max_workers=None):
        """
        初始化源获取器

        Args:
            timeout: 单个 URL 请求的超时时间（秒）
            max_workers: 并发线程数，默认每个源一个线程
        """
        self.timeout = timeout
        self.max_workers = max_workers

    def fetch_text(self, source):
        """获取源的原始 XML 文本"""
        if source.kind == URL_SOURCE and source.is_configured:
            return self._fetch_url(source.value.strip())
        if source.kind == FILE_SOURCE and source.is_configured:
            return self._read_file(source.path)
        raise FetchError("无效的 XML 源配置", source=source.display_name)

    def _fetch_url(self, url):
        logger.info(f"正在获取 {url} 的 XML 内容...")
        try:
            response = requests.get(url, timeout=self.timeout, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FetchError(f"无法从 {url} 获取 XML: {e}", source=url) from e

        try:
            return response.content.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise FetchError(f"{url} 的内容不是 UTF-8 编码: {e}", source=url) from e

    def _read_file(self, path):
        logger.info(f"正在读取文件 {path} ...")
        try:
            with open(path, 'r', encoding='utf-8-sig') as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            name = os.path.basename(path)
            raise FetchError(f"无法读取文件 {name}: {e}", source=name) from e

    def parse(self, text, source_name=''):
        """把 XML 文本解析成元素树，返回根元素"""
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise FeedParseError(f"XML 解析失败 ({source_name}): {e}", source=source_name) from e

        self._describe_feed(text, source_name)
        return root

    def _describe_feed(self, text, source_name):
        # 仅用于日志：记录 RSS 频道标题和格式问题
        feed = feedparser.parse(io.BytesIO(text.encode('utf-8')))
        if feed.bozo:
            logger.warning(f"RSS源可能有格式问题: {source_name} ({feed.get('bozo_exception')})")

        title = feed.feed.get('title', source_name)
        logger.info(f"RSS源标题: {title} ({feed.get('version') or 'unknown'}, {len(feed.entries)} 个条目)")

    def fetch_and_parse(self, source):
        text = self.fetch_text(source)
        return self.parse(text, source.display_name)

    def fetch_all(self, sources):
        """
        并发获取并解析所有源

        Args:
            sources: FeedSource 列表

        Returns:
            与 sources 顺序一致的根元素列表

        Raises:
            FetchError / FeedParseError: 按源顺序的第一个失败
        """
        sources = list(sources)
        if not sources:
            return []

        workers = self.max_workers or len(sources)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.fetch_and_parse, source) for source in sources]

        # 线程池退出时所有任务都已结束
        return [future.result() for future in futures]
