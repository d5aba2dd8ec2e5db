from __future__ import annotations
import json
from dataclasses import asdict
from pathlib import Path
from typing import List, Dict, Any
from ..config import CacheConfig
from . import viz

def _calculate_percentiles(data: List[float]) -> Dict[str, float]:
    """Calculates p50, p95, p99 without numpy."""
    if not data:
        return {}
    data.sort()
    n = len(data)
    p50 = data[int(n * 0.5)]
    p95 = data[int(n * 0.95)]
    p99 = data[int(n * 0.99)]
    return {
        "min": data[0],
        "max": data[-1],
        "p50": p50,
        "p95": p95,
        "p99": p99,
        "avg": sum(data) / n
    }

def generate_report_json(timeline: List[Dict[str, Any]], config: CacheConfig, stats: Dict[str, Any]) -> Dict[str, Any]:
    """Generates a JSON-compatible dictionary from the timed operations."""
    if not timeline:
        return {"total_ops": 0, "failed_ops": 0, "latency_stats": {}, "timeline": [], **stats}

    latencies: Dict[str, Dict[str, List[float]]] = {}
    for item in timeline:
        latencies.setdefault(item['pattern'], {}).setdefault(item['phase'], []).append(item['latency_us'])

    latency_stats: Dict[str, Dict[str, Any]] = {}
    for pattern, phases in latencies.items():
        latency_stats[pattern] = {}
        for phase, values in phases.items():
            total = sum(values)
            entry = _calculate_percentiles(values)
            entry["total"] = total
            entry["count"] = len(values)
            latency_stats[pattern][phase] = entry

    report_data = {
        "total_ops": len(timeline),
        "failed_ops": sum(1 for item in timeline if not item['ok']),
        "latency_stats": latency_stats,
        "timeline": timeline,
        "config": asdict(config)
    }
    report_data.update(stats)
    return report_data

def generate_report(timeline: List[Dict[str, Any]], config: CacheConfig, stats: Dict[str, Any]):
    """Generates all report artifacts."""
    report_data = generate_report_json(timeline, config, stats)
    output_dir = Path(config.report_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with open(output_dir / "report.json", "w") as f:
        json.dump(report_data, f, indent=4)

    viz.export_latency_chart(report_data['timeline'], str(output_dir / "report.html"))

    print(viz.export_latency_ascii(report_data['timeline']))

    for pattern, phases in report_data['latency_stats'].items():
        line = f"  {pattern.capitalize()} access:"
        for phase in ("write", "read"):
            if phase in phases:
                entry = phases[phase]
                line += f" {phase} time - {entry['avg']:.2f} average, {entry['total']:.2f} total (us);"
        print(line.rstrip(";"))

    if report_data.get('cache_stats'):
        print("\nCache Stats:")
        for key, value in report_data['cache_stats'].items():
            if isinstance(value, float):
                print(f"  {key:<18}: {value:.2%}")
            else:
                print(f"  {key:<18}: {value}")
    if report_data.get('device_io'):
        print("\nDevice I/O:")
        for key, value in report_data['device_io'].items():
            print(f"  {key:<6}: {value}")
    if report_data.get('sync_failures'):
        print(f"\nSync write-back failures: {report_data['sync_failures']}")

    print(f"\nReports generated in {output_dir.absolute()}")
    print(f"Total Ops: {report_data['total_ops']} ({report_data['failed_ops']} failed)")
