from django.urls import path

from . import views

app_name = 'reportcards'

urlpatterns = [
    # Generation
    path('generate/class/<int:class_group_id>/term/<int:term_id>/',
         views.generate_class_reports, name='generate_class'),
    path('<uuid:report_id>/regenerate/', views.regenerate_report, name='regenerate'),

    # Reads
    path('<uuid:report_id>/', views.report_detail, name='detail'),
    path('class/<int:class_group_id>/term/<int:term_id>/', views.class_reports, name='class_reports'),
    path('student/<int:student_id>/', views.student_reports, name='student_reports'),

    # Comments & finalization
    path('<uuid:report_id>/subject-comment/', views.subject_comment, name='subject_comment'),
    path('<uuid:report_id>/overall-comment/', views.overall_comment, name='overall_comment'),
    path('<uuid:report_id>/finalize/', views.finalize_report, name='finalize'),
]
