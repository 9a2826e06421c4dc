"""
Quiz Module - Làm bài trắc nghiệm có giới hạn thời gian

Chức năng:
- User xem danh sách quiz, làm bài có đếm ngược, nộp bài
- Tính điểm tự động, xem lại kết quả từng câu
- Admin quản lý đề, câu hỏi, xem điểm người làm bài
"""

# ==================== BLUEPRINTS ====================

# Blueprint cho user (cần đăng nhập)
from quizmaster.quiz.routes import quiz_bp

# Blueprint cho admin
from quizmaster.quiz.admin_routes import quiz_admin_bp

__all__ = ['quiz_bp', 'quiz_admin_bp']
