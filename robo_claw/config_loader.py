"""
配置加载器 - 支持YAML配置文件
"""
import os
import yaml
from typing import Dict, Any

from .core.prompts import SYSTEM_PROMPT


def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """加载配置文件"""
    config = get_default_config()

    if os.path.exists(config_path):
        with open(config_path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)
            if user_config:
                # 合并配置
                config = deep_merge(config, user_config)

    # 从环境变量读取API密钥
    if not config['llm'].get('api_key'):
        config['llm']['api_key'] = os.getenv('ANTHROPIC_API_KEY')

    if os.getenv('PORT'):
        config['server']['port'] = int(os.environ['PORT'])

    # 展开路径中的 ~
    if config['server'].get('static_dir'):
        config['server']['static_dir'] = os.path.expanduser(config['server']['static_dir'])

    return config


def get_default_config() -> Dict[str, Any]:
    """获取默认配置"""
    return {
        'llm': {
            'api_key': None,
            'model': 'claude-sonnet-4-5-20250929',
            'max_tokens': 4096,
            'base_url': None
        },
        'agent': {
            'max_iterations': 20,
            'stop_timeout': 5.0
        },
        'relay': {
            'command_timeout': 30.0
        },
        'data_sources': {
            'head_camera': True,
            'orbit_camera': True,
            'state_data': True
        },
        'server': {
            'host': '0.0.0.0',
            'port': 3000,
            'static_dir': None
        },
        'logging': {
            'level': 'INFO'
        },
        'system_prompt': SYSTEM_PROMPT
    }


def deep_merge(base: Dict, update: Dict) -> Dict:
    """深度合并两个字典"""
    result = base.copy()
    for key, value in update.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def save_config(config: Dict[str, Any], config_path: str = "config.yaml") -> None:
    """保存配置到文件"""
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(config, f, default_flow_style=False, allow_unicode=True)
