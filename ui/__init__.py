# ui - PyQt5 views for the instrument tracker
