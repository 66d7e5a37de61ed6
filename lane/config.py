"""
球道配置

集中定义规则引擎的可调参数
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict
import json

from core.lifecycle import LANE_CONTACT_Z, SETTLE_DELAY, STALL_SPEED
from core.pins import HEAD_PIN_Z, PIN_COUNT, PIN_SPACING, TILT_THRESHOLD_DEG


@dataclass
class LaneConfig:
    """
    球道配置

    Attributes:
        settle_delay: 判定本球结束前的防抖时间 (秒)
        rerack_delay: 自由模式全倒后自动重摆的等待时间 (秒)
        tilt_threshold_deg: 倒瓶倾角阈值
        lane_contact_z: 球道接触有效边界 (世界坐标 z，球道朝 -z 方向)
        grab_speed_limit: 允许拿起移动中的球的最大速度 (米/秒)
        stall_speed: 接触球道后低于该速度即开始判定本球结束 (米/秒)
        pin_count: 每组球瓶数
        pin_spacing: 瓶距 (米)
        head_pin_z: 头瓶 z 坐标
    """
    # 计时
    settle_delay: float = SETTLE_DELAY
    rerack_delay: float = 5.0

    # 倒瓶判定
    tilt_threshold_deg: float = TILT_THRESHOLD_DEG

    # 球道几何
    lane_contact_z: float = LANE_CONTACT_Z

    # 拿球与停球
    grab_speed_limit: float = 0.1
    stall_speed: float = STALL_SPEED

    # 摆瓶
    pin_count: int = PIN_COUNT
    pin_spacing: float = PIN_SPACING
    head_pin_z: float = HEAD_PIN_Z

    def __post_init__(self):
        if self.settle_delay < 0 or self.rerack_delay < 0:
            raise ValueError("Timer delays must be non-negative")
        if self.stall_speed < 0 or self.grab_speed_limit < 0:
            raise ValueError("Speed limits must be non-negative")
        if not 0 < self.pin_count <= PIN_COUNT:
            raise ValueError(f"pin_count must be in 1..{PIN_COUNT}, got {self.pin_count}")
        if not 0 < self.tilt_threshold_deg < 90:
            raise ValueError("tilt_threshold_deg must be between 0 and 90")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'LaneConfig':
        """从字典创建配置 (忽略未知字段)"""
        valid_keys = cls.__dataclass_fields__.keys()
        filtered = {k: v for k, v in d.items() if k in valid_keys}
        return cls(**filtered)

    @classmethod
    def from_json(cls, path: str) -> 'LaneConfig':
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
