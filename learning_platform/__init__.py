"""在线学习平台的课程目录与学习进度核心。"""

__version__ = "0.1.0"
