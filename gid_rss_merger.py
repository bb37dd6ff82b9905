#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
按 g:id 合并多个 Google Shopping RSS 商品源

多个源中 g:id 相同的 item 会合并成一个 item：g:id 放在最前面，
随后按源的顺序拼接每个 item 的其它子元素。同时统计每个源的有效条目数
以及在两个以上源中出现的公共条目数。
"""

import argparse
import copy
import logging
import os
import sys
import xml.etree.ElementTree as ET
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from feed_sources import FETCH_TIMEOUT, FeedFetcher, FeedSource
from gid_rules import GID_TAG, GOOGLE_NS, IdentifierExtractor, is_gid_tag, local_name, namespace_of, qualified_name
from merge_errors import ConfigurationError, MergeError
from xml_formatter import format_xml

logger = logging.getLogger(__name__)

MERGED_FEED_TITLE = 'Merged XML Feed'
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
DEFAULT_OUTPUT_NAME = 'merged-xml'
MIN_SOURCES = 2


@dataclass
class FileStat:
    """单个源的统计：有效条目数，以及全局的公共条目数"""
    file_name: str
    total_records: int
    common_records: int


@dataclass
class MergeRequest:
    """一次合并的输入：源列表和输出文件名"""
    sources: List[FeedSource] = field(default_factory=list)
    output_name: str = DEFAULT_OUTPUT_NAME

    @classmethod
    def from_args(cls, values, output_name=DEFAULT_OUTPUT_NAME):
        return cls(sources=[FeedSource.from_arg(v) for v in values], output_name=output_name)

    def add_url(self, url):
        self.sources.append(FeedSource.from_url(url))

    def add_file(self, path):
        self.sources.append(FeedSource.from_file(path))

    def remove_source(self, index):
        """删除一个源；至少保留两行，下标越界时不做任何修改"""
        if len(self.sources) <= MIN_SOURCES or not 0 <= index < len(self.sources):
            return False
        del self.sources[index]
        return True

    @property
    def valid_sources(self):
        return [s for s in self.sources if s.is_configured]


@dataclass
class MergeResult:
    stats: List[FileStat] = field(default_factory=list)
    document: Optional[ET.Element] = None
    xml: str = ''
    error: Optional[str] = None

    @property
    def success(self):
        return self.error is None and self.document is not None

    def preview(self, lines=20):
        return '\n'.join(self.xml.split('\n')[:lines])


class GidRSSMerger:
    def __init__(self, timeout=FETCH_TIMEOUT, max_workers=None, fetcher=None, extractor=None):
        """
        初始化 g:id 合并器

        Args:
            timeout: URL 请求超时时间（秒）
            max_workers: 并发获取的线程数
            fetcher: 自定义的源获取器，默认使用 FeedFetcher
            extractor: 自定义的标识符提取器，默认使用 g:id 规则
        """
        self.fetcher = fetcher or FeedFetcher(timeout=timeout, max_workers=max_workers)
        self.extractor = extractor or IdentifierExtractor()
        self.processing = False

    @contextmanager
    def _processing(self):
        self.processing = True
        try:
            yield
        finally:
            self.processing = False

    def validate(self, request):
        """返回已配置的源；不足两个时直接报错，不进行任何获取"""
        sources = request.valid_sources
        if len(sources) < MIN_SOURCES:
            raise ConfigurationError(f"请至少提供 {MIN_SOURCES} 个 XML 源（URL 或文件）")
        return sources

    def collect_items(self, root):
        """按文档顺序返回所有本地名为 item 的元素（含默认命名空间，如 RSS 1.0），Google 命名空间除外"""
        return [
            element for element in root.iter()
            if isinstance(element.tag, str)
            and local_name(element.tag) == 'item'
            and namespace_of(element.tag) != GOOGLE_NS
        ]

    def group_items(self, item_lists):
        """
        按 g:id 对所有源的 item 分组

        Args:
            item_lists: 每个源的 item 列表，按源顺序排列

        Returns:
            (groups, valid_counts)：groups 为 g:id 到 item 列表的有序字典，
            顺序由每个 g:id 第一次出现的位置决定；valid_counts 为每个源中带有效 g:id 的条目数
        """
        groups = {}
        valid_counts = []

        for items in item_lists:
            valid = 0
            for item in items:
                gid = self.extractor.extract(item)
                if not gid:
                    continue

                valid += 1
                groups.setdefault(gid, []).append(item)

            valid_counts.append(valid)

        return groups, valid_counts

    def compute_stats(self, names, valid_counts, groups):
        common = sum(1 for items in groups.values() if len(items) > 1)
        return [
            FileStat(file_name=name, total_records=count, common_records=common)
            for name, count in zip(names, valid_counts)
        ]

    def _clone(self, element):
        # 深拷贝，Google 命名空间统一写成 g: 前缀，去掉兄弟节点之间的空白
        clone = copy.deepcopy(element)
        for node in clone.iter():
            if isinstance(node.tag, str):
                node.tag = qualified_name(node.tag)
            attrib = {qualified_name(k): v for k, v in node.attrib.items()}
            node.attrib.clear()
            node.attrib.update(attrib)
        clone.tail = None
        return clone

    def _build_item(self, gid, items):
        gid_element = ET.Element(GID_TAG)
        gid_element.text = gid

        children = [gid_element]
        for item in items:
            children.extend(self._clone(child) for child in item if not is_gid_tag(child.tag))

        merged_item = ET.Element('item')
        merged_item.extend(children)
        return merged_item

    def build_document(self, groups):
        """根据分组生成合并后的 RSS 文档"""
        rss = ET.Element('rss')
        rss.set('version', '2.0')
        rss.set('xmlns:g', GOOGLE_NS)

        title = ET.Element('title')
        title.text = MERGED_FEED_TITLE

        channel = ET.SubElement(rss, 'channel')
        channel.extend([title] + [self._build_item(gid, items) for gid, items in groups.items()])

        return rss

    def serialize(self, document):
        xml_string = ET.tostring(document, encoding='unicode')
        return format_xml(f"{XML_DECLARATION}\n{xml_string}")

    def process(self, request):
        """处理全部合并流程，失败时抛出异常"""
        with self._processing():
            sources = self.validate(request)
            roots = self.fetcher.fetch_all(sources)

            item_lists = [self.collect_items(root) for root in roots]
            for source, items in zip(sources, item_lists):
                logger.info(f"从 {source.display_name} 获取到 {len(items)} 个 item")

            groups, valid_counts = self.group_items(item_lists)
            stats = self.compute_stats([s.display_name for s in sources], valid_counts, groups)
            logger.info(f"合并得到 {len(groups)} 个商品，其中 {stats[0].common_records} 个出现在多个源中")

            document = self.build_document(groups)
            return MergeResult(stats=stats, document=document, xml=self.serialize(document))

    def merge(self, request):
        """处理全部合并流程，错误记录日志后放在结果的 error 中返回"""
        try:
            return self.process(request)
        except MergeError as e:
            logger.error(f"合并 XML 时出错: {e}")
            return MergeResult(error=str(e))
        except Exception as e:
            logger.exception("合并 XML 时出现未知错误")
            return MergeResult(error=f"未知错误: {e}")

    def save(self, result, name=DEFAULT_OUTPUT_NAME, output_dir='.'):
        """把合并结果保存为 <name>.xml"""
        if not result.xml:
            raise MergeError("没有可保存的合并结果")

        os.makedirs(output_dir, exist_ok=True)
        output_file = os.path.join(output_dir, f"{name or DEFAULT_OUTPUT_NAME}.xml")
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(result.xml)

        logger.info(f"合并后的XML已保存到 {output_file}")
        return output_file


def format_stats_table(stats):
    """把统计结果渲染成文本表格"""
    headers = ('File', 'Total Records', 'Common Records')
    rows = [(s.file_name, str(s.total_records), str(s.common_records)) for s in stats]

    widths = [max(len(row[i]) for row in [headers] + rows) for i in range(len(headers))]
    lines = ['  '.join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in [headers] + rows]
    lines.insert(1, '  '.join('-' * width for width in widths))
    return '\n'.join(lines)


def build_arg_parser():
    parser = argparse.ArgumentParser(description="按 g:id 合并多个 Google Shopping XML 商品源")
    parser.add_argument('sources', nargs='+', help="XML 源：URL（http/https）或本地文件路径")
    parser.add_argument('--name', default=DEFAULT_OUTPUT_NAME, help="输出文件名（不含 .xml 后缀）")
    parser.add_argument('--output-dir', default='.', help="输出目录")
    parser.add_argument('--timeout', type=float, default=FETCH_TIMEOUT, help="URL 请求超时时间（秒）")
    parser.add_argument('--workers', type=int, default=None, help="并发获取的线程数")
    parser.add_argument('--preview', type=int, default=0, metavar='N', help="打印合并结果的前 N 行")
    parser.add_argument('--no-save', action='store_true', help="只显示统计，不保存文件")
    parser.add_argument('--verbose', action='store_true', help="输出调试日志")
    return parser


# 主函数
def main(argv=None):
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    request = MergeRequest.from_args(args.sources, output_name=args.name)
    merger = GidRSSMerger(timeout=args.timeout, max_workers=args.workers)

    result = merger.merge(request)
    if not result.success:
        print(f"错误: {result.error}")
        return 1

    print(format_stats_table(result.stats))

    if args.preview > 0:
        print()
        print(result.preview(args.preview))

    if not args.no_save:
        output_file = merger.save(result, request.output_name, args.output_dir)
        print(f"合并完成，结果保存在: {output_file}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
