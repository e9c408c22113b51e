from django.urls import path

from services.coordinator import views

urlpatterns = [
    path("sessions/start", views.start_session),
    path("sessions/lookup/<str:channel_id>/<str:user_id>", views.lookup_session),
    path("sessions/<str:session_id>/join", views.join_session),
    path("sessions/<str:user_session_id>/update", views.update_session),
    path("sessions/<str:session_id>", views.session_detail),
    path("gamestate/<str:guild_id>/<str:game_date>", views.game_state),
    path("gamestate/<str:guild_id>/<str:game_date>/complete", views.complete_game),
    path("gamestate/<str:guild_id>/<str:game_date>/<str:user_id>", views.delete_game),
    path("synapse/<str:game_date>", views.puzzle),
    path("token", views.exchange_token),
]
