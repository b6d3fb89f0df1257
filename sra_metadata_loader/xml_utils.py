"""
SRA (ENA) の XML を dict として扱うための関数群。
"""
from typing import Any, Dict, List, Optional, Union

from lxml import etree


def _local_name(tag: Any) -> str:
    name = str(tag)
    if "}" in name:
        name = name.split("}")[1]
    return name


def _element_to_dict(
    element: etree._Element,
    parent_nsmap: Optional[Dict[Optional[str], str]] = None,
) -> Union[Dict[str, Any], str, None]:
    """lxml Element を dict に変換する。xmltodict (attr_prefix="", cdata_key="content") と同じ出力形式。"""
    result: Dict[str, Any] = {}
    parent_nsmap = parent_nsmap or {}

    # 名前空間宣言を属性として追加
    for prefix, uri in element.nsmap.items():
        if parent_nsmap.get(prefix) != uri:
            if prefix is None:
                result["xmlns"] = uri
            else:
                result[f"xmlns:{prefix}"] = uri

    for attr_key, attr_value in element.attrib.items():
        result[_local_name(attr_key)] = attr_value

    text = element.text
    if text is not None:
        text = text.strip()
        if text:
            if result:
                result["content"] = text
            elif len(element) == 0:
                return text

    children: Dict[str, List[Any]] = {}
    for child in element:
        # コメントや処理命令は無視する
        if not isinstance(child.tag, str):
            continue
        child_value = _element_to_dict(child, element.nsmap)
        children.setdefault(_local_name(child.tag), []).append(child_value)

    # 単一要素のリストを値に変換
    for child_key, child_list in children.items():
        if len(child_list) == 1:
            result[child_key] = child_list[0]
        else:
            result[child_key] = child_list

    if not result:
        return None

    return result


def parse_xml(xml_bytes: bytes) -> Dict[str, Any]:
    """XML bytes を {root_tag: dict} にパースする。不正な XML は etree.XMLSyntaxError。"""
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    root = etree.fromstring(xml_bytes, parser=parser)
    return {_local_name(root.tag): _element_to_dict(root)}


def as_list(value: Any) -> List[Any]:
    """単一要素 / リスト / None を常にリストとして扱う。"""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def get_text(d: Any, key: str) -> Optional[str]:
    """辞書から文字列を取得する。"""
    if d is None or not isinstance(d, dict):
        return None
    v = d.get(key)
    if v is None:
        return None
    if isinstance(v, str):
        return v
    if isinstance(v, dict):
        return v.get("content")
    return str(v)
