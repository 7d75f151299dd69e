"""
FlowMonitor XML reports

Writes flow counters in the layout of ns-3's FlowMonitor
``SerializeToXmlFile`` output and reads such files (ours or ns-3's)
back into FlowCounters::

    <FlowMonitor>
      <FlowStats>
        <Flow flowId="1" timeFirstTxPacket="+2000000000.0ns" ... />
      </FlowStats>
      <Ipv4FlowClassifier>
        <Flow flowId="1" sourceAddress="10.1.0.1" destinationAddress="10.1.0.2" ... />
      </Ipv4FlowClassifier>
    </FlowMonitor>
"""

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Sequence

from .stats_aggregator import FlowCounters


UDP_PROTOCOL = 17

_TIME_RE = re.compile(r'^\s*([+-]?[0-9.eE+-]+?)\s*(ns|us|ms|s|min|h|d)?\s*$')
_UNIT_SECONDS = {
    'ns': 1e-9,
    'us': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'min': 60.0,
    'h': 3600.0,
    'd': 86400.0,
    None: 1e-9,  # ns-3 prints bare values in nanoseconds
}


def parse_time(value: str) -> float:
    """Convert an ns-3 time string such as ``+2.5e+09ns`` to seconds"""
    match = _TIME_RE.match(value)
    if not match:
        raise ValueError(f"Unrecognized time value: {value!r}")
    number, unit = match.groups()
    return float(number) * _UNIT_SECONDS[unit]


def format_time(seconds: float) -> str:
    return f"{seconds * 1e9:+.1f}ns"


def write_flowmon(flows: Sequence[FlowCounters], output_path: Path) -> Path:
    """Serialize flow counters to a FlowMonitor-style XML file"""
    root = ET.Element('FlowMonitor')
    stats_el = ET.SubElement(root, 'FlowStats')
    classifier_el = ET.SubElement(root, 'Ipv4FlowClassifier')

    for flow in flows:
        ET.SubElement(stats_el, 'Flow', {
            'flowId': str(flow.flow_id),
            'timeFirstTxPacket': format_time(flow.first_tx_time),
            'timeLastRxPacket': format_time(flow.last_rx_time),
            'delaySum': format_time(flow.delay_sum),
            'txBytes': str(flow.tx_bytes),
            'rxBytes': str(flow.rx_bytes),
            'txPackets': str(flow.tx_packets),
            'rxPackets': str(flow.rx_packets),
            'lostPackets': str(flow.tx_packets - flow.rx_packets),
        })

        if flow.src_address is not None:
            attrs = {
                'flowId': str(flow.flow_id),
                'sourceAddress': str(flow.src_address),
                'destinationAddress': str(flow.dst_address),
                'protocol': str(UDP_PROTOCOL),
            }
            if flow.src_port is not None:
                attrs['sourcePort'] = str(flow.src_port)
            if flow.dst_port is not None:
                attrs['destinationPort'] = str(flow.dst_port)
            ET.SubElement(classifier_el, 'Flow', attrs)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    tree = ET.ElementTree(root)
    ET.indent(tree)
    tree.write(output_path, encoding='utf-8', xml_declaration=True)
    return output_path


def read_flowmon(path: Path) -> List[FlowCounters]:
    """
    Read flow counters from a FlowMonitor XML file

    Flows keep the order in which they appear under ``FlowStats``.

    Raises:
        ValueError: the file is not a FlowMonitor report
    """
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as err:
        raise ValueError(f"{path} is not valid XML: {err}") from err

    if root.tag != 'FlowMonitor':
        raise ValueError(f"{path} is not a FlowMonitor report (root <{root.tag}>)")

    classifier: Dict[int, Dict[str, str]] = {}
    for el in root.findall('./Ipv4FlowClassifier/Flow'):
        classifier[int(el.get('flowId'))] = el.attrib

    flows = []
    for el in root.findall('./FlowStats/Flow'):
        flow_id = int(el.get('flowId'))
        info = classifier.get(flow_id, {})
        flows.append(FlowCounters(
            flow_id=flow_id,
            tx_packets=int(el.get('txPackets', 0)),
            rx_packets=int(el.get('rxPackets', 0)),
            rx_bytes=int(el.get('rxBytes', 0)),
            tx_bytes=int(el.get('txBytes', 0)),
            delay_sum=parse_time(el.get('delaySum', '0ns')),
            first_tx_time=parse_time(el.get('timeFirstTxPacket', '0ns')),
            last_rx_time=parse_time(el.get('timeLastRxPacket', '0ns')),
            src_address=info.get('sourceAddress'),
            dst_address=info.get('destinationAddress'),
            src_port=int(info['sourcePort']) if 'sourcePort' in info else None,
            dst_port=int(info['destinationPort']) if 'destinationPort' in info else None,
        ))

    return flows
