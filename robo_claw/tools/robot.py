"""
机器人工具目录 - 观察、移动底盘、机械臂、夹爪、头部、导航与复位

工具名与仿真端的命令名一致。参数 Schema 只作为给模型的说明，
这里不做数值范围校验。
"""
from typing import Any, Dict

from .base import RobotTool, ToolKind, ToolRegistry
from ..core.types import DataSources


# 导航包含转向与行驶两个阶段，给更长的超时
NAVIGATION_TIMEOUT_MULTIPLIER = 2.0

DEFAULT_STOP_DISTANCE = 0.3

OBSERVE_SOURCES = ("head_camera", "orbit_camera", "state_data")


class ObserveSceneTool(RobotTool):
    """场景观察工具"""

    def __init__(self):
        super().__init__(
            name="observe_scene",
            display_name="Observe Scene",
            description=(
                "Capture visual and/or state data from the simulation. Use this to look around, "
                "understand the environment, and check robot status. Returns images from the robot "
                "head camera and/or orbit camera, plus structured state data about all objects and the robot."
            ),
            kind=ToolKind.OBSERVE,
            parameter_schema={
                "type": "object",
                "properties": {
                    "sources": {
                        "type": "object",
                        "description": "Which data sources to include. All enabled by default.",
                        "properties": {
                            "head_camera": {
                                "type": "boolean",
                                "description": "Include the robot head-mounted camera view (first-person perspective)"
                            },
                            "orbit_camera": {
                                "type": "boolean",
                                "description": "Include the orbit camera view (third-person overview)"
                            },
                            "state_data": {
                                "type": "boolean",
                                "description": "Include structured state data (object positions, robot joint angles, etc.)"
                            }
                        }
                    }
                }
            }
        )

    def build_params(self, tool_input: Dict[str, Any], data_sources: DataSources) -> Dict[str, Any]:
        # 优先级：本次调用显式值 > 会话默认值 > True
        requested = tool_input.get("sources") or {}
        defaults = data_sources.to_dict() if data_sources else {}
        sources = {}
        for key in OBSERVE_SOURCES:
            value = requested.get(key)
            if value is None:
                value = defaults.get(key)
            if value is None:
                value = True
            sources[key] = value
        return {"sources": sources}


class MoveBaseTool(RobotTool):
    """底盘移动工具"""

    def __init__(self):
        super().__init__(
            name="move_base",
            display_name="Move Base",
            description=(
                "Move the robot base in a direction. The robot has a mobile base with forward/backward "
                "and turn motors. Blocks until movement completes or times out."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "direction": {
                        "type": "string",
                        "enum": ["forward", "backward", "turn_left", "turn_right"],
                        "description": "Direction to move the base"
                    },
                    "amount": {
                        "type": "number",
                        "description": (
                            "Amount to move: meters for forward/backward, radians for turning. "
                            "Typical values: 0.1-1.0m for movement, 0.1-3.14 rad for turning."
                        )
                    }
                },
                "required": ["direction", "amount"]
            }
        )


class MoveArmTool(RobotTool):
    """机械臂逆运动学定位工具"""

    def __init__(self):
        super().__init__(
            name="move_arm",
            display_name="Move Arm",
            description=(
                "Move a robot arm end-effector to a target position using inverse kinematics. "
                "The robot has left and right arms, each with a 2-link IK chain. Coordinates are "
                "relative to the arm shoulder in the arm plane: x is forward distance, y is vertical distance."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "arm": {
                        "type": "string",
                        "enum": ["left", "right"],
                        "description": "Which arm to move"
                    },
                    "x": {
                        "type": "number",
                        "description": "Forward distance from shoulder (meters). Range approx 0.05-0.25"
                    },
                    "y": {
                        "type": "number",
                        "description": "Vertical distance from shoulder (meters). Range approx 0.05-0.25"
                    }
                },
                "required": ["arm", "x", "y"]
            }
        )


class SetGripperTool(RobotTool):
    """夹爪开合工具"""

    def __init__(self):
        super().__init__(
            name="set_gripper",
            display_name="Set Gripper",
            description="Open or close a gripper on the robot arm.",
            parameter_schema={
                "type": "object",
                "properties": {
                    "arm": {
                        "type": "string",
                        "enum": ["left", "right"],
                        "description": "Which gripper to control"
                    },
                    "state": {
                        "type": "string",
                        "enum": ["open", "close"],
                        "description": "Whether to open or close the gripper"
                    }
                },
                "required": ["arm", "state"]
            }
        )


class MoveHeadTool(RobotTool):
    """头部云台工具"""

    def __init__(self):
        super().__init__(
            name="move_head",
            display_name="Move Head",
            description=(
                "Point the robot head camera by setting pan and tilt angles. Returns the new head "
                "camera image after moving. Pan rotates left/right, tilt angles up/down."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "pan": {
                        "type": "number",
                        "description": "Head pan angle in radians. 0=forward, positive=left, negative=right. Range: -3.2 to 3.2"
                    },
                    "tilt": {
                        "type": "number",
                        "description": "Head tilt angle in radians. 0=level, positive=up, negative=down. Range: -0.76 to 1.45"
                    }
                },
                "required": ["pan", "tilt"]
            }
        )


class GetRobotStateTool(RobotTool):
    """机器人状态查询工具"""

    def __init__(self):
        super().__init__(
            name="get_robot_state",
            display_name="Get Robot State",
            description=(
                "Get the full robot state including all joint positions, joint velocities, actuator "
                "controls, and body positions. Useful for precise position checking."
            ),
            kind=ToolKind.OBSERVE
        )


class GetSceneObjectsTool(RobotTool):
    """场景物体列表工具"""

    def __init__(self):
        super().__init__(
            name="get_scene_objects",
            display_name="Get Scene Objects",
            description=(
                "Get a list of all named objects in the scene with their 3D positions, types, and sizes. "
                "Use this to understand the environment layout and find targets for navigation."
            ),
            kind=ToolKind.OBSERVE
        )


class NavigateToTool(RobotTool):
    """高层导航工具"""

    def __init__(self):
        super().__init__(
            name="navigate_to",
            display_name="Navigate To",
            description=(
                "High-level navigation: move the robot base to a named object or XY coordinate. "
                "The robot will turn to face the target and drive toward it. Use this for tasks like "
                "\"go to the table\" or \"move to position (1, 0.5)\"."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "target": {
                        "type": "string",
                        "description": (
                            "Name of an object in the scene (e.g. \"table1\") OR coordinates as \"x,y\" "
                            "(e.g. \"1.35,0.02\")"
                        )
                    },
                    "stop_distance": {
                        "type": "number",
                        "description": "How far from the target to stop (meters). Default 0.3"
                    }
                },
                "required": ["target"]
            },
            timeout_multiplier=NAVIGATION_TIMEOUT_MULTIPLIER
        )

    def build_params(self, tool_input: Dict[str, Any], data_sources: DataSources) -> Dict[str, Any]:
        stop_distance = tool_input.get("stop_distance")
        return {
            "target": tool_input.get("target"),
            "stop_distance": DEFAULT_STOP_DISTANCE if stop_distance is None else stop_distance
        }


class ResetRobotTool(RobotTool):
    """机器人复位工具"""

    def __init__(self):
        super().__init__(
            name="reset_robot",
            display_name="Reset Robot",
            description=(
                "Reset the robot to its initial pose and position. Use when the robot is in a bad "
                "state or you need to start over."
            )
        )


def register_robot_tools(registry: ToolRegistry) -> None:
    """注册全部机器人工具"""
    tools = [
        ObserveSceneTool(),
        MoveBaseTool(),
        MoveArmTool(),
        SetGripperTool(),
        MoveHeadTool(),
        GetRobotStateTool(),
        GetSceneObjectsTool(),
        NavigateToTool(),
        ResetRobotTool(),
    ]
    for tool in tools:
        registry.register(tool)


def create_tool_registry() -> ToolRegistry:
    """创建包含全部机器人工具的注册表"""
    registry = ToolRegistry()
    register_robot_tools(registry)
    return registry
